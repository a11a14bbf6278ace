"""
Ban requests: filed by faculty, decided by admins. Admins can also ban and
unban users directly.

Admin recipients are resolved before anything is persisted, so a request
filed while there are no admins fails with ``NoRecipients`` and leaves no
trace.
"""

from typing import List, Optional

from constants import BanRequestStatus, Collections, NotificationKinds, Roles
from database import Store
from errors import Conflict, Forbidden, InvalidInput, NotFound
from logging_config import get_logger
from models.ban_request import BanRequestModel
from models.notification import BanRequestRefs
from models.user import public_user
from services.fanout import Audience, FanoutEvent, FanoutRouter

logger = get_logger("ban_requests")


class BanRequestService:
    def __init__(self, store: Store, router: FanoutRouter):
        self._store = store
        self._router = router

    async def create(self, requester_id: str, user_to_ban: Optional[str], reason: Optional[str], post: Optional[str] = None) -> dict:
        if not user_to_ban:
            raise InvalidInput("Invalid user to ban ID")
        requester = await self._store.find_by_id(Collections.USERS, requester_id)
        if not requester:
            raise NotFound("Requester not found")
        if requester.get("role") != Roles.FACULTY:
            raise Forbidden("Unauthorized: Faculty only")
        if not reason or not reason.strip():
            raise InvalidInput("Reason for the ban request is required")
        target = await self._store.find_by_id(Collections.USERS, user_to_ban)
        if not target:
            raise NotFound("User to ban not found")
        if post in ("", "null"):
            post = None
        if post and not await self._store.exists(Collections.POSTS, {"id": post}):
            raise NotFound("Post not found")

        request = BanRequestModel(requester=requester_id, user_to_ban=user_to_ban, reason=reason.strip(), post=post)
        requester_name = requester.get("name", "A faculty member")
        target_name = target.get("name", "a user")

        def render(count: int) -> str:
            if count == 1:
                return f"{requester_name} has submitted a ban request for {target_name}."
            return f"{count} ban requests submitted for {target_name}, latest from {requester_name}."

        event = FanoutEvent(
            kind=NotificationKinds.BAN_REQUEST,
            actor=requester_id,
            audience=Audience.ADMINS,
            related_id=user_to_ban,
            refs=BanRequestRefs(kind=NotificationKinds.BAN_REQUEST, ban_request_id=request.id, sender_id=requester_id),
            render=render,
        )
        # Raises NoRecipients before the request is stored
        admins = await self._router.resolve_recipients(event)

        await self._store.insert(Collections.BAN_REQUESTS, request.model_dump())
        logger.info("Ban request filed", extra={"data": {"ban_request_id": request.id, "user_to_ban": user_to_ban}})
        await self._router.dispatch(event, recipients=admins)
        return request.model_dump()

    async def list_requests(self, admin_id: str, pending_only: bool = True) -> List[dict]:
        await self._require_admin(admin_id)
        query = {"status": BanRequestStatus.PENDING} if pending_only else {}
        requests = await self._store.find_many(Collections.BAN_REQUESTS, query, sort=[("created_at", -1)])
        user_ids = list({r["requester"] for r in requests} | {r["user_to_ban"] for r in requests})
        users = await self._store.find_many(Collections.USERS, {"id": {"$in": user_ids}}) if user_ids else []
        people = {u["id"]: public_user(u) for u in users}
        return [
            {
                **{k: v for k, v in r.items() if k != "_id"},
                "requester": people.get(r["requester"]),
                "user_to_ban": people.get(r["user_to_ban"]),
            }
            for r in requests
        ]

    async def approve(self, request_id: str, admin_id: str) -> dict:
        return await self._decide(request_id, admin_id, approve=True)

    async def reject(self, request_id: str, admin_id: str) -> dict:
        return await self._decide(request_id, admin_id, approve=False)

    async def _decide(self, request_id: str, admin_id: str, approve: bool) -> dict:
        await self._require_admin(admin_id)
        request = await self._store.find_by_id(Collections.BAN_REQUESTS, request_id)
        if not request:
            raise NotFound("Ban request not found")
        if request.get("status") != BanRequestStatus.PENDING:
            raise Conflict("Ban request already decided")
        target = await self._store.find_by_id(Collections.USERS, request["user_to_ban"])
        if approve and not target:
            raise NotFound("User to ban not found")

        status = BanRequestStatus.APPROVED if approve else BanRequestStatus.REJECTED
        updated = await self._store.update_by_id(Collections.BAN_REQUESTS, request_id, {"status": status})
        if approve:
            await self._store.update_by_id(Collections.USERS, target["id"], {"banned": True})
            logger.info("User banned", extra={"data": {"user_id": target["id"], "ban_request_id": request_id}})

        kind = NotificationKinds.BAN_REQUEST_APPROVED if approve else NotificationKinds.BAN_REQUEST_REJECTED
        target_name = target.get("name", "the user") if target else "the user"

        def render(count: int) -> str:
            return f"Your ban request for {target_name} has been {status}."

        await self._router.dispatch(FanoutEvent(
            kind=kind,
            actor=admin_id,
            audience=Audience.DIRECT,
            related_id=request["user_to_ban"],
            refs=BanRequestRefs(kind=kind, ban_request_id=request_id, sender_id=admin_id),
            render=render,
            recipient=request["requester"],
        ))
        logger.info(f"Ban request {status}", extra={"data": {"ban_request_id": request_id}})
        return {k: v for k, v in updated.items() if k != "_id"}

    async def set_banned(self, admin_id: str, user_id: str, banned: bool) -> dict:
        """Direct admin ban or unban, outside the request workflow."""
        await self._require_admin(admin_id)
        target = await self._store.find_by_id(Collections.USERS, user_id)
        if not target:
            raise NotFound("User not found")
        if banned and target.get("role") == Roles.ADMIN:
            raise InvalidInput("Cannot ban an admin")
        updated = await self._store.update_by_id(Collections.USERS, user_id, {"banned": banned})
        logger.info(
            "User banned" if banned else "User unbanned",
            extra={"data": {"user_id": user_id, "admin_id": admin_id}}
        )
        return {**public_user(updated), "banned": updated["banned"]}

    async def _require_admin(self, user_id: str) -> dict:
        admin = await self._store.find_by_id(Collections.USERS, user_id)
        if not admin or admin.get("role") != Roles.ADMIN:
            logger.warning("Admin access denied", extra={"data": {"user_id": user_id}})
            raise Forbidden("Unauthorized: Admins only")
        return admin
