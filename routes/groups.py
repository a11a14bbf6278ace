from fastapi import APIRouter, Depends
from typing import List
from models.group import GroupCreateRequest, GroupMemberRequest
from models.user import UserModel
from routes.deps import get_current_user, get_services
from services.container import Services

router = APIRouter(prefix="/api/groups", tags=["Groups"])


@router.post("")
async def create_group(
    body: GroupCreateRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.groups.create(current_user.id, body.name, body.member_ids)


@router.get("", response_model=List[dict])
async def list_groups(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.groups.list_for(current_user.id)


@router.get("/{group_id}")
async def get_group(
    group_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.groups.get(group_id, current_user.id)


@router.post("/{group_id}/members")
async def add_member(
    group_id: str,
    body: GroupMemberRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.groups.add_member(group_id, current_user.id, body.member_id)


@router.delete("/{group_id}/members/{member_id}")
async def remove_member(
    group_id: str,
    member_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.groups.remove_member(group_id, current_user.id, member_id)


@router.put("/{group_id}/read")
async def reset_unread(
    group_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Zero the current user's unread counter after opening the group."""
    return await services.groups.reset_unread(group_id, current_user.id)
