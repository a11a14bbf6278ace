from fastapi import APIRouter, Depends
from typing import List
from models.post import CommentRequest, PostCreateRequest
from models.user import UserModel
from routes.deps import get_current_user, get_services
from services.container import Services

router = APIRouter(prefix="/api/posts", tags=["Posts"])


@router.post("")
async def create_post(
    body: PostCreateRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.create_post(current_user.id, body.content, body.tags)


@router.get("", response_model=List[dict])
async def list_posts(
    limit: int = 50,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.list_posts(limit=limit)


@router.get("/{post_id}")
async def get_post(
    post_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.get_post(post_id)


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    await services.social.delete_post(post_id, current_user.model_dump())
    return {"message": "Post deleted"}


@router.post("/{post_id}/like")
async def like_post(
    post_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.like(post_id, current_user.id)


@router.post("/{post_id}/dislike")
async def dislike_post(
    post_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.dislike(post_id, current_user.id)


@router.post("/{post_id}/comment")
async def comment_on_post(
    post_id: str,
    body: CommentRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    return await services.social.comment(post_id, current_user.id, body.text)
