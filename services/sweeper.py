"""
Background notification maintenance.

``ExpirySweeper`` periodically removes notifications past their
viewed-dependent deadline and broadcasts each deletion. ``ChangeFeedListener``
watches the notifications collection and broadcasts deletions made by anyone
else (maintenance scripts, manual cleanup). Both are started and stopped by
the application lifespan.
"""

import asyncio
from contextlib import suppress
from datetime import datetime
from typing import Callable, Optional

from config import config
from constants import Collections, RealtimeEvents
from database import Store
from errors import StorageFailure
from logging_config import get_logger
from models.notification import is_expired
from services.notifications import utc_now

logger = get_logger("sweeper")


class ExpirySweeper:
    def __init__(
        self,
        store: Store,
        transport,
        interval_seconds: int = config.NOTIFICATION_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._transport = transport
        self._interval = interval_seconds
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        """One pass; a failure on one notification does not stop the rest."""
        docs = await self._store.find_many(Collections.NOTIFICATIONS, {})
        now = self._clock()

        expired = deleted = 0
        for doc in docs:
            try:
                if not is_expired(doc, now):
                    continue
                expired += 1
                await self._store.delete_by_id(Collections.NOTIFICATIONS, doc["id"])
                deleted += 1
                await self._transport.broadcast_all(RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": doc["id"]})
            except Exception:
                logger.error(
                    "Failed to sweep notification",
                    exc_info=True,
                    extra={"data": {"notification_id": doc.get("id")}}
                )

        logger.info(
            f"Cleaned up {deleted} expired notifications",
            extra={"data": {"scanned": len(docs), "expired": expired, "failed": expired - deleted}}
        )
        return deleted

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except StorageFailure:
                # Leftovers are picked up by the next run
                logger.error("Notification sweep aborted: scan failed")
            except Exception:
                logger.error("Notification sweep failed", exc_info=True)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run_forever())
            logger.info(f"Expiry sweeper started (every {self._interval}s)")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Expiry sweeper stopped")


class ChangeFeedListener:
    def __init__(self, store: Store, transport, collection: str = Collections.NOTIFICATIONS):
        self._store = store
        self._transport = transport
        self._collection = collection
        self._task: Optional[asyncio.Task] = None

    async def handle(self, change: dict) -> bool:
        if change.get("operation_type") != "delete":
            return False
        notification_id = (change.get("document_key") or {}).get("_id")
        if notification_id is None:
            return False
        try:
            await self._transport.broadcast_all(RealtimeEvents.NOTIFICATION_DELETED, {"notificationId": str(notification_id)})
        except Exception:
            logger.error("Failed to broadcast deletion", exc_info=True, extra={"data": {"notification_id": str(notification_id)}})
            return False
        logger.debug("Notification deletion broadcast", extra={"data": {"notification_id": str(notification_id)}})
        return True

    async def run(self) -> None:
        try:
            async for change in self._store.watch(self._collection, ["delete"]):
                await self.handle(change)
        except StorageFailure:
            logger.error("Change feed unavailable; external notification deletions will not be broadcast")

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())
            logger.info(f"Change feed listener started on {self._collection}")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Change feed listener stopped")
