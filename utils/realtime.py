"""
Realtime session registry.

Every websocket connection gets a connection id on accept and can then join
any number of logical channels (a channel is named after a user id). Events
are pushed as ``{"event": <name>, "data": <payload>}`` JSON frames.

Usage:
    registry = SessionRegistry()

    connection_id = await registry.connect(websocket)
    await registry.join(connection_id, user_id)
    ...
    registry.disconnect(connection_id)

    # From any service that was handed the registry
    await registry.emit(user_id, "newNotification", notification)
    await registry.broadcast_all("notificationDeleted", {"notificationId": nid})
"""

import asyncio
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from logging_config import get_logger

logger = get_logger("realtime")


class SessionRegistry:
    """Maps logical identities (channels) to the websocket connections bound to them."""

    def __init__(self):
        self._sockets: Dict[str, WebSocket] = {}
        self._channels: Dict[str, Set[str]] = {}
        self._bindings: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> str:
        """Accept ``websocket`` and register it; returns its connection id."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex[:12]
        async with self._lock:
            self._sockets[connection_id] = websocket
            self._bindings[connection_id] = set()
        logger.info("Realtime connection opened", extra={"data": {"connection_id": connection_id}})
        return connection_id

    async def join(self, connection_id: str, channel_id: Optional[str]) -> bool:
        """Bind a connection to ``channel_id``. A missing channel is logged and ignored."""
        if not channel_id:
            logger.warning("Join received with no channel", extra={"data": {"connection_id": connection_id}})
            return False
        async with self._lock:
            if connection_id not in self._sockets:
                logger.warning("Join received for unknown connection", extra={"data": {"connection_id": connection_id}})
                return False
            self._channels.setdefault(channel_id, set()).add(connection_id)
            self._bindings[connection_id].add(channel_id)
        logger.info(f"Connection joined channel {channel_id}", extra={"data": {"connection_id": connection_id}})
        return True

    def channels_of(self, connection_id: str) -> Set[str]:
        return set(self._bindings.get(connection_id, set()))

    def connections_in(self, channel_id: str) -> int:
        return len(self._channels.get(channel_id, set()))

    def disconnect(self, connection_id: str) -> None:
        """
        Drop a connection and every channel binding it holds.

        Synchronous, with no awaits, so it never interleaves with another mutation.
        """
        self._sockets.pop(connection_id, None)
        for channel_id in self._bindings.pop(connection_id, set()):
            members = self._channels.get(channel_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._channels[channel_id]
        logger.debug("Realtime connection closed", extra={"data": {"connection_id": connection_id}})

    async def emit(self, channel_id: str, event: str, payload: Any) -> int:
        """Deliver to every connection bound to ``channel_id``; no-op when nobody is bound."""
        connection_ids = list(self._channels.get(channel_id, set()))
        if not connection_ids:
            return 0
        frame = {"event": event, "data": jsonable_encoder(payload)}
        return await self._deliver(connection_ids, frame)

    async def broadcast_all(self, event: str, payload: Any) -> int:
        """Deliver to every connected session regardless of channel bindings."""
        connection_ids = list(self._sockets.keys())
        if not connection_ids:
            return 0
        frame = {"event": event, "data": jsonable_encoder(payload)}
        return await self._deliver(connection_ids, frame)

    async def send(self, connection_id: str, event: str, payload: Any) -> bool:
        """Reply on one specific connection."""
        frame = {"event": event, "data": jsonable_encoder(payload)}
        return await self._deliver([connection_id], frame) == 1

    async def _deliver(self, connection_ids, frame: Dict[str, Any]) -> int:
        delivered = 0
        for connection_id in connection_ids:
            websocket = self._sockets.get(connection_id)
            if websocket is None:
                continue
            try:
                await websocket.send_json(frame)
                delivered += 1
            except Exception as e:
                # Socket went away between bind and send
                logger.debug(f"Failed to send to websocket {connection_id}: {e}")
                self.disconnect(connection_id)
        return delivered
