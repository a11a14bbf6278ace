from fastapi import APIRouter, Depends
from typing import List
from models.ban_request import BanRequestCreate
from models.user import UserModel
from routes.deps import get_current_user, get_services
from services.container import Services

router = APIRouter(prefix="/api/ban-requests", tags=["Ban Requests"])


@router.post("")
async def create_ban_request(
    body: BanRequestCreate,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Faculty only. Every admin is notified."""
    request = await services.ban_requests.create(current_user.id, body.user_to_ban, body.reason, body.post)
    return {"message": "Ban request submitted", "banRequest": request}


@router.get("", response_model=List[dict])
async def list_pending_ban_requests(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.ban_requests.list_requests(current_user.id, pending_only=True)


@router.get("/all", response_model=List[dict])
async def list_all_ban_requests(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.ban_requests.list_requests(current_user.id, pending_only=False)


@router.post("/{request_id}/approve")
async def approve_ban_request(
    request_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.ban_requests.approve(request_id, current_user.id)


@router.post("/{request_id}/reject")
async def reject_ban_request(
    request_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.ban_requests.reject(request_id, current_user.id)
