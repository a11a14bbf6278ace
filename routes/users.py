from fastapi import APIRouter, Depends
from typing import List
from constants import Collections
from models.user import UserModel, public_user
from routes.deps import get_current_user, get_services
from services.container import Services

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=List[dict])
async def list_users(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Directory of everyone except the caller."""
    users = await services.store.find_many(Collections.USERS, {"id": {"$ne": current_user.id}}, sort=[("name", 1)])
    return [public_user(u) for u in users]


@router.get("/me")
async def get_me(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.profile(current_user.id)


@router.get("/friend-requests/sent", response_model=List[dict])
async def list_sent_requests(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.sent_requests(current_user.id)


@router.get("/friend-requests/received", response_model=List[dict])
async def list_received_requests(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.received_requests(current_user.id)


@router.post("/friend-requests/{request_id}/accept")
async def accept_request(
    request_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.accept_request(request_id, current_user.id)


@router.post("/friend-requests/{request_id}/decline")
async def decline_request(
    request_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.decline_request(request_id, current_user.id)


@router.get("/{user_id}")
async def get_profile(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.profile(user_id)


@router.post("/{user_id}/friend-request")
async def send_request(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    request = await services.social.send_request(current_user.id, user_id)
    return {"message": "Friend request sent", "request": request}


@router.delete("/acquaintances/{user_id}")
async def remove_acquaintance(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.remove_acquaintance(current_user.id, user_id)


@router.put("/{user_id}/ban")
async def ban_user(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Admin only; admins themselves cannot be banned."""
    user = await services.ban_requests.set_banned(current_user.id, user_id, banned=True)
    return {"message": "User banned successfully", "user": user}


@router.put("/{user_id}/unban")
async def unban_user(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    user = await services.ban_requests.set_banned(current_user.id, user_id, banned=False)
    return {"message": "User unbanned successfully", "user": user}
