"""
Notification aggregator.

The only component that creates, mutates or deletes notification documents.
Repeated events for the same (recipient, kind, related_id) collapse into one
document whose ``count`` grows and whose ``created_at`` restarts; every
upsert pushes the full post-update record to the recipient's channel.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel

from constants import Collections, RealtimeEvents
from database import Store
from errors import Conflict, Forbidden, NotFound, TransportFailure
from logging_config import get_logger
from models.notification import NotificationModel, is_expired

logger = get_logger("notifications")

Renderer = Callable[[int], str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationAggregator:
    def __init__(self, store: Store, transport, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._transport = transport
        self._clock = clock

    # --- Owning-subsystem operations ---

    async def upsert(
        self,
        recipient: str,
        kind: str,
        related_id: Optional[str],
        render: Renderer,
        refs: BaseModel,
    ) -> NotificationModel:
        """Create the notification for the triple, or increment the existing one."""
        key = {"recipient": recipient, "kind": kind, "related_id": related_id}
        now = self._clock()
        refs_doc = refs.model_dump()

        doc = await self._increment(key, refs_doc, now)
        if doc is None:
            fresh = NotificationModel(
                recipient=recipient,
                kind=kind,
                related_id=related_id,
                refs=refs_doc,
                text=render(1),
                created_at=now,
            )
            try:
                doc = await self._store.insert(Collections.NOTIFICATIONS, fresh.model_dump())
            except Conflict:
                # Lost the create race against a concurrent event for the same triple
                doc = await self._increment(key, refs_doc, now)
                if doc is None:
                    raise
            else:
                logger.info(
                    f"Notification created: {kind}",
                    extra={"data": {"notification_id": fresh.id, "recipient": recipient, "related_id": related_id}}
                )

        if doc.get("count", 1) > 1:
            text = render(doc["count"])
            updated = await self._store.update_by_id(Collections.NOTIFICATIONS, doc["id"], {"text": text})
            doc = updated or {**doc, "text": text}
            logger.info(
                f"Notification aggregated: {kind}",
                extra={"data": {"notification_id": doc["id"], "recipient": recipient, "count": doc["count"]}}
            )

        notification = NotificationModel(**doc)
        await self._emit(recipient, RealtimeEvents.NEW_NOTIFICATION, notification.model_dump())
        return notification

    async def _increment(self, key: dict, refs_doc: dict, now: datetime) -> Optional[dict]:
        return await self._store.increment_one(
            Collections.NOTIFICATIONS,
            key,
            increment={"count": 1},
            patch={"refs": refs_doc, "created_at": now},
        )

    async def consume(self, recipient: str, kind: str, related_id: Optional[str]) -> Optional[str]:
        """Delete the notification whose cause has been resolved; returns its id if one existed."""
        doc = await self._store.find_one(
            Collections.NOTIFICATIONS,
            {"recipient": recipient, "kind": kind, "related_id": related_id},
        )
        if not doc:
            logger.debug(f"No {kind} notification to consume", extra={"data": {"recipient": recipient, "related_id": related_id}})
            return None

        await self._store.delete_by_id(Collections.NOTIFICATIONS, doc["id"])
        logger.info(f"Notification consumed: {kind}", extra={"data": {"notification_id": doc["id"], "recipient": recipient}})
        await self._emit(recipient, RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": doc["id"]})
        return doc["id"]

    # --- Recipient-facing operations ---

    async def list_for(self, user_id: str, unread_only: bool = False) -> List[NotificationModel]:
        """Non-expired notifications for ``user_id``, newest first."""
        query = {"recipient": user_id}
        if unread_only:
            query["read"] = False
        docs = await self._store.find_many(Collections.NOTIFICATIONS, query, sort=[("created_at", -1)])
        now = self._clock()
        return [NotificationModel(**doc) for doc in docs if not is_expired(doc, now)]

    async def unread_count(self, user_id: str) -> int:
        return len(await self.list_for(user_id, unread_only=True))

    async def mark_read(self, user_id: str, notification_id: str) -> NotificationModel:
        await self._owned(user_id, notification_id)
        doc = await self._store.update_by_id(Collections.NOTIFICATIONS, notification_id, {"read": True})
        if doc is None:
            raise NotFound("Notification not found")
        await self._emit(user_id, RealtimeEvents.NOTIFICATION_READ, {"notificationId": notification_id})
        return NotificationModel(**doc)

    async def mark_viewed(self, user_id: str, notification_id: str) -> NotificationModel:
        await self._owned(user_id, notification_id)
        doc = await self._store.update_by_id(Collections.NOTIFICATIONS, notification_id, {"viewed": True})
        if doc is None:
            raise NotFound("Notification not found")
        await self._emit(user_id, RealtimeEvents.NOTIFICATION_VIEWED, {"notificationId": notification_id})
        return NotificationModel(**doc)

    async def mark_all_viewed(self, user_id: str) -> int:
        pending = await self._store.find_many(Collections.NOTIFICATIONS, {"recipient": user_id, "viewed": False})
        now = self._clock()
        ids = [doc["id"] for doc in pending if not is_expired(doc, now)]
        if not ids:
            return 0
        await self._store.update_many(Collections.NOTIFICATIONS, {"id": {"$in": ids}}, {"viewed": True})
        for notification_id in ids:
            await self._emit(user_id, RealtimeEvents.NOTIFICATION_VIEWED, {"notificationId": notification_id})
        return len(ids)

    async def mark_all_read(self, user_id: str) -> int:
        pending = await self._store.find_many(Collections.NOTIFICATIONS, {"recipient": user_id, "read": False})
        now = self._clock()
        ids = [doc["id"] for doc in pending if not is_expired(doc, now)]
        if not ids:
            return 0
        await self._store.update_many(Collections.NOTIFICATIONS, {"id": {"$in": ids}}, {"read": True})
        for notification_id in ids:
            await self._emit(user_id, RealtimeEvents.NOTIFICATION_READ, {"notificationId": notification_id})
        return len(ids)

    async def delete(self, user_id: str, notification_id: str) -> None:
        await self._owned(user_id, notification_id)
        await self._store.delete_by_id(Collections.NOTIFICATIONS, notification_id)
        logger.info("Notification deleted by recipient", extra={"data": {"notification_id": notification_id}})
        await self._emit(user_id, RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": notification_id})

    async def _owned(self, user_id: str, notification_id: str) -> dict:
        doc = await self._store.find_by_id(Collections.NOTIFICATIONS, notification_id)
        if doc is None or is_expired(doc, self._clock()):
            logger.warning("Notification not found", extra={"data": {"notification_id": notification_id}})
            raise NotFound("Notification not found")
        if doc["recipient"] != user_id:
            logger.warning("Notification belongs to another user", extra={"data": {"notification_id": notification_id}})
            raise Forbidden("Unauthorized")
        return doc

    async def _emit(self, channel_id: str, event: str, payload) -> None:
        try:
            await self._transport.emit(channel_id, event, payload)
        except Exception as exc:
            logger.error(f"Failed to emit {event}", exc_info=True, extra={"data": {"channel": channel_id}})
            raise TransportFailure() from exc
