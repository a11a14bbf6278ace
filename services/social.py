"""
Social actions that notify: post reactions and comments, friend requests and
the acquaintance relation they establish.
"""

from typing import Any, Dict, List, Optional

from constants import Collections, NotificationKinds, RequestStatus, Roles
from database import Store
from errors import Conflict, Forbidden, InvalidInput, NotFound
from logging_config import get_logger
from models.friend_request import FriendRequestModel
from models.notification import CommentRefs, FriendDecisionRefs, FriendRequestRefs, PostReactionRefs
from models.post import CommentModel, PostModel
from models.user import public_user
from services.fanout import Audience, FanoutEvent, FanoutRouter
from services.notifications import NotificationAggregator

logger = get_logger("social")


def _strip_internal(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    return {k: v for k, v in doc.items() if k != "_id"}


class SocialService:
    def __init__(self, store: Store, router: FanoutRouter, notifier: NotificationAggregator):
        self._store = store
        self._router = router
        self._notifier = notifier

    async def _active_user(self, user_id: str, action: str) -> dict:
        user = await self._store.find_by_id(Collections.USERS, user_id)
        if not user:
            raise NotFound("User not found")
        if user.get("banned"):
            logger.warning(f"Banned user tried to {action}", extra={"data": {"user_id": user_id}})
            raise Forbidden(f"You are banned and cannot {action}")
        return user

    async def _post(self, post_id: str) -> dict:
        post = await self._store.find_by_id(Collections.POSTS, post_id)
        if not post:
            raise NotFound("Post not found")
        return post

    # --- Posts ---

    async def create_post(self, author_id: str, content: str, tags: Optional[List[str]] = None) -> dict:
        await self._active_user(author_id, "create posts")
        if not content or not content.strip():
            raise InvalidInput("Post content is required")
        post = PostModel(author=author_id, content=content.strip(), tags=tags or [])
        doc = await self._store.insert(Collections.POSTS, post.model_dump())
        logger.info("Post created", extra={"data": {"post_id": post.id}})
        return _strip_internal(doc)

    async def list_posts(self, limit: int = 50) -> List[dict]:
        posts = await self._store.find_many(Collections.POSTS, {}, sort=[("created_at", -1)], limit=limit)
        return [_strip_internal(p) for p in posts]

    async def get_post(self, post_id: str) -> dict:
        return _strip_internal(await self._post(post_id))

    async def delete_post(self, post_id: str, user: dict) -> None:
        post = await self._post(post_id)
        if post["author"] != user["id"] and user.get("role") != Roles.ADMIN:
            raise Forbidden("You can only delete your own posts")
        await self._store.delete_by_id(Collections.POSTS, post_id)
        logger.info("Post deleted", extra={"data": {"post_id": post_id}})

    async def like(self, post_id: str, user_id: str) -> dict:
        return await self._react(post_id, user_id, NotificationKinds.LIKE)

    async def dislike(self, post_id: str, user_id: str) -> dict:
        return await self._react(post_id, user_id, NotificationKinds.DISLIKE)

    async def _react(self, post_id: str, user_id: str, kind: str) -> dict:
        """Toggle a like or dislike; adding one removes the opposite reaction."""
        post = await self._post(post_id)
        verb = "like posts" if kind == NotificationKinds.LIKE else "dislike posts"
        user = await self._active_user(user_id, verb)

        field, opposite = ("likes", "dislikes") if kind == NotificationKinds.LIKE else ("dislikes", "likes")
        if user_id in post.get(field, []):
            await self._store.update_one(Collections.POSTS, {"id": post_id}, {"$pull": {field: user_id}})
            return _strip_internal(await self._store.find_by_id(Collections.POSTS, post_id))

        await self._store.update_one(
            Collections.POSTS,
            {"id": post_id},
            {"$addToSet": {field: user_id}, "$pull": {opposite: user_id}},
        )

        if post["author"] != user_id:
            name = user.get("name") or "Anonymous"
            past = "liked" if kind == NotificationKinds.LIKE else "disliked"
            noun = field[:-1]

            def render(count: int) -> str:
                if count == 1:
                    return f"{name} {past} your post"
                return f"Your post received {count} {noun}s, latest from {name}"

            await self._router.dispatch(FanoutEvent(
                kind=kind,
                actor=user_id,
                audience=Audience.DIRECT,
                related_id=post_id,
                refs=PostReactionRefs(kind=kind, post_id=post_id, sender_id=user_id),
                render=render,
                recipient=post["author"],
            ))

        return _strip_internal(await self._store.find_by_id(Collections.POSTS, post_id))

    async def comment(self, post_id: str, user_id: str, text: Optional[str]) -> dict:
        post = await self._post(post_id)
        user = await self._active_user(user_id, "comment on posts")
        if not text or not text.strip():
            raise InvalidInput("Comment text is required")

        comment = CommentModel(user=user_id, text=text.strip())
        await self._store.update_one(Collections.POSTS, {"id": post_id}, {"$push": {"comments": comment.model_dump()}})

        if post["author"] != user_id:
            name = user.get("name") or "Anonymous"

            def render(count: int) -> str:
                if count == 1:
                    return f"{name} commented on your post"
                return f"{count} new comments on your post, latest from {name}"

            await self._router.dispatch(FanoutEvent(
                kind=NotificationKinds.COMMENT,
                actor=user_id,
                audience=Audience.DIRECT,
                related_id=post_id,
                refs=CommentRefs(kind=NotificationKinds.COMMENT, post_id=post_id, comment_id=comment.id, sender_id=user_id),
                render=render,
                recipient=post["author"],
            ))

        return _strip_internal(await self._store.find_by_id(Collections.POSTS, post_id))

    # --- Friend requests ---

    async def send_request(self, from_id: str, to_id: str) -> dict:
        if from_id == to_id:
            raise InvalidInput("Cannot send request to yourself")
        sender = await self._active_user(from_id, "send friend requests")
        recipient = await self._store.find_by_id(Collections.USERS, to_id)
        if not recipient:
            raise NotFound("Recipient not found")
        if await self._store.exists(Collections.FRIEND_REQUESTS, {
            "from_user": from_id, "to_user": to_id, "status": RequestStatus.PENDING,
        }):
            raise Conflict("Request already sent")
        if to_id in sender.get("acquaintances", []):
            raise Conflict("Already acquaintances")

        request = FriendRequestModel(from_user=from_id, to_user=to_id)
        await self._store.insert(Collections.FRIEND_REQUESTS, request.model_dump())
        logger.info("Friend request sent", extra={"data": {"request_id": request.id, "to": to_id}})

        name = sender.get("name", "Someone")

        def render(count: int) -> str:
            if count == 1:
                return f"{name} sent you a friend request"
            return f"{name} sent you a friend request ({count})"

        await self._router.dispatch(FanoutEvent(
            kind=NotificationKinds.FRIEND_REQUEST,
            actor=from_id,
            audience=Audience.DIRECT,
            related_id=from_id,
            refs=FriendRequestRefs(kind=NotificationKinds.FRIEND_REQUEST, request_id=request.id, sender_id=from_id),
            render=render,
            recipient=to_id,
        ))
        return request.model_dump()

    async def accept_request(self, request_id: str, user_id: str) -> dict:
        return await self._decide(request_id, user_id, accept=True)

    async def decline_request(self, request_id: str, user_id: str) -> dict:
        return await self._decide(request_id, user_id, accept=False)

    async def _decide(self, request_id: str, user_id: str, accept: bool) -> dict:
        request = await self._store.find_by_id(Collections.FRIEND_REQUESTS, request_id)
        if not request:
            raise NotFound("Request not found")
        if request["to_user"] != user_id:
            raise Forbidden("Unauthorized")
        if request.get("status") != RequestStatus.PENDING:
            raise Conflict("Request already decided")

        decider = await self._store.find_by_id(Collections.USERS, user_id)
        requester_id = request["from_user"]
        await self._store.update_by_id(
            Collections.FRIEND_REQUESTS,
            request_id,
            {"status": RequestStatus.ACCEPTED if accept else RequestStatus.DECLINED},
        )

        if accept:
            await self._store.update_one(Collections.USERS, {"id": requester_id}, {"$addToSet": {"acquaintances": user_id}})
            await self._store.update_one(Collections.USERS, {"id": user_id}, {"$addToSet": {"acquaintances": requester_id}})

        # The request notification is resolved, not merely observed
        await self._notifier.consume(user_id, NotificationKinds.FRIEND_REQUEST, requester_id)
        await self._store.delete_by_id(Collections.FRIEND_REQUESTS, request_id)

        kind = NotificationKinds.FRIEND_REQUEST_ACCEPTED if accept else NotificationKinds.FRIEND_REQUEST_DECLINED
        name = decider.get("name", "Someone") if decider else "Someone"
        verb = "accepted" if accept else "declined"

        def render(count: int) -> str:
            return f"{name} {verb} your friend request"

        await self._router.dispatch(FanoutEvent(
            kind=kind,
            actor=user_id,
            audience=Audience.DIRECT,
            related_id=user_id,
            refs=FriendDecisionRefs(kind=kind, sender_id=user_id),
            render=render,
            recipient=requester_id,
        ))
        logger.info(f"Friend request {verb}", extra={"data": {"request_id": request_id}})
        return await self.profile(user_id)

    async def sent_requests(self, user_id: str) -> List[dict]:
        requests = await self._store.find_many(
            Collections.FRIEND_REQUESTS, {"from_user": user_id, "status": RequestStatus.PENDING}
        )
        return [
            {**_strip_internal(r), "to": public_user(await self._store.find_by_id(Collections.USERS, r["to_user"]))}
            for r in requests
        ]

    async def received_requests(self, user_id: str) -> List[dict]:
        requests = await self._store.find_many(
            Collections.FRIEND_REQUESTS, {"to_user": user_id, "status": RequestStatus.PENDING}
        )
        return [
            {**_strip_internal(r), "from": public_user(await self._store.find_by_id(Collections.USERS, r["from_user"]))}
            for r in requests
        ]

    async def remove_acquaintance(self, user_id: str, other_id: str) -> dict:
        user = await self._store.find_by_id(Collections.USERS, user_id)
        if not user:
            raise NotFound("User not found")
        if other_id not in user.get("acquaintances", []):
            raise InvalidInput("Acquaintance not found in your list")

        await self._store.update_one(Collections.USERS, {"id": user_id}, {"$pull": {"acquaintances": other_id}})
        await self._store.update_one(Collections.USERS, {"id": other_id}, {"$pull": {"acquaintances": user_id}})
        logger.info("Acquaintance removed", extra={"data": {"acquaintance_id": other_id}})
        return await self.profile(user_id)

    async def profile(self, user_id: str) -> dict:
        """Public profile with acquaintances expanded."""
        user = await self._store.find_by_id(Collections.USERS, user_id)
        if not user:
            raise NotFound("User not found")
        ids = user.get("acquaintances", [])
        acquaintances = await self._store.find_many(Collections.USERS, {"id": {"$in": ids}}) if ids else []
        profile = {k: v for k, v in user.items() if k not in ("_id", "password")}
        profile["acquaintances"] = [public_user(a) for a in acquaintances]
        return profile
