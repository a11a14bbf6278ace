from fastapi import APIRouter, Depends
from typing import List
from models.message import SendMessageRequest
from models.user import UserModel
from routes.deps import get_current_user, get_services
from services.container import Services

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.post("")
async def send_message(
    body: SendMessageRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Send a direct or group message as the current user."""
    return await services.messaging.send_message(
        current_user.id,
        body.content,
        receiver_id=body.receiver_id,
        group_id=body.group_id,
    )


@router.get("/conversations", response_model=List[dict])
async def get_conversations(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.messaging.conversations(current_user.id)


@router.get("/history/{user_id}", response_model=List[dict])
async def get_history(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.messaging.history(current_user.id, user_id)


@router.get("/group-history/{group_id}", response_model=List[dict])
async def get_group_history(
    group_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.messaging.group_history(current_user.id, group_id)
