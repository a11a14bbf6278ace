"""
Realtime WebSocket endpoint.

Connections authenticate with the same bearer token as the HTTP API, passed
as the ``token`` query parameter; a missing, invalid or unknown token closes
the socket with a policy-violation code before it is accepted.

Frames in both directions are ``{"event": <name>, "data": <payload>}``.
Inbound events:

- ``join``: ``data`` is the authenticated user's id; the connection starts
  receiving that user's channel and is answered with ``joined``.
- ``sendMessage``: ``data`` is ``{sender_id, receiver_id | group_id, content}``;
  the sender must be the authenticated user.

A failing inbound event is answered with ``error`` on the same connection and
the connection stays open.
"""

import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from constants import Collections, RealtimeEvents
from errors import DomainError, Forbidden, InfrastructureError, InvalidInput, StorageFailure
from logging_config import get_logger, connection_id_var, user_id_var
from routes.deps import decode_user_id

router = APIRouter(tags=["Realtime"])
logger = get_logger("ws")


async def _join(services, connection_id: str, user_id: str, data: Any) -> None:
    if not isinstance(data, str) or not data:
        raise InvalidInput("User id is required to join")
    if data != user_id:
        logger.warning("Join for another user's channel", extra={"data": {"channel_id": data}})
        raise Forbidden("You can only join your own channel")
    await services.transport.join(connection_id, user_id)
    await services.transport.send(connection_id, RealtimeEvents.JOINED, {"userId": user_id})


async def _send_message(services, connection_id: str, user_id: str, data: Any) -> None:
    if not isinstance(data, dict):
        raise InvalidInput("Message payload must be an object")
    sender_id = data.get("sender_id", user_id)
    if sender_id != user_id:
        logger.warning("sendMessage for another sender", extra={"data": {"sender_id": sender_id}})
        raise Forbidden("You can only send messages as yourself")
    # Delivery to the sender's own sessions happens through the fan-out
    await services.messaging.send_message(
        user_id,
        data.get("content"),
        receiver_id=data.get("receiver_id"),
        group_id=data.get("group_id"),
    )


HANDLERS = {
    RealtimeEvents.JOIN: _join,
    RealtimeEvents.SEND_MESSAGE: _send_message,
}


async def handle_frame(services, connection_id: str, user_id: str, raw: str) -> None:
    try:
        try:
            frame = json.loads(raw)
        except ValueError:
            raise InvalidInput("Malformed frame")
        if not isinstance(frame, dict) or frame.get("event") not in HANDLERS:
            raise InvalidInput("Unknown event")
        await HANDLERS[frame["event"]](services, connection_id, user_id, frame.get("data"))
    except DomainError as exc:
        if not isinstance(exc, InfrastructureError):
            logger.info(f"Realtime event rejected: {exc.detail}")
        await services.transport.send(connection_id, RealtimeEvents.ERROR, {"message": exc.detail})
    except Exception:
        logger.error("Unhandled error in realtime event", exc_info=True)
        await services.transport.send(connection_id, RealtimeEvents.ERROR, {"message": InfrastructureError.detail})


async def _authenticate(services, websocket: WebSocket):
    token = websocket.query_params.get("token")
    user_id = decode_user_id(token) if token else None
    if user_id is None:
        return None
    if not await services.store.exists(Collections.USERS, {"id": user_id}):
        logger.warning("Token valid but user not found in DB", extra={"data": {"user_id": user_id}})
        return None
    return user_id


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket):
    services = websocket.app.state.services
    try:
        user_id = await _authenticate(services, websocket)
    except StorageFailure:
        logger.error("Realtime connection refused: user lookup failed")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    if user_id is None:
        logger.warning("Realtime connection refused: missing or invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection_id = await services.transport.connect(websocket)
    connection_id_var.set(connection_id)
    user_id_var.set(user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_frame(services, connection_id, user_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        channels = sorted(services.transport.channels_of(connection_id))
        services.transport.disconnect(connection_id)
        logger.info("Realtime connection closed", extra={"data": {"channels": channels}})
