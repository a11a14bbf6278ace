"""
Messaging pipeline.

Validates and persists direct and group messages, keeps group unread counters
in sync, then hands the populated message to the fan-out router. Both the
HTTP route and the websocket ``sendMessage`` event go through ``send_message``.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from constants import Collections, NotificationKinds, RealtimeEvents, Roles
from database import Store
from errors import Forbidden, InvalidInput, NotFound
from logging_config import get_logger
from models.group import rebuild_unread_counts
from models.message import MessageModel
from models.notification import MessageRefs
from models.user import public_user
from services.fanout import Audience, FanoutEvent, FanoutRouter
from services.notifications import utc_now

logger = get_logger("messaging")


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def _strip_internal(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in doc.items() if k != "_id"}


class MessagingPipeline:
    def __init__(self, store: Store, router: FanoutRouter, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._router = router
        self._clock = clock

    async def send_message(
        self,
        sender_id: str,
        content: Optional[str],
        receiver_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Persist and fan out one message; returns it populated, from the sender's point of view."""
        if not sender_id:
            raise InvalidInput("Sender is required")
        if bool(receiver_id) == bool(group_id):
            raise InvalidInput("Provide exactly one of receiver_id or group_id")
        if not content or not content.strip():
            raise InvalidInput("Message content is required")

        sender = await self._store.find_by_id(Collections.USERS, sender_id)
        if not sender:
            raise NotFound("Sender not found")
        if sender.get("banned"):
            raise Forbidden("You are banned and cannot send messages")

        if group_id:
            return await self._send_to_group(sender, group_id, content)
        return await self._send_direct(sender, receiver_id, content)

    async def _send_to_group(self, sender: dict, group_id: str, content: str) -> Dict[str, Any]:
        group = await self._store.find_by_id(Collections.GROUPS, group_id)
        if not group:
            raise NotFound("Group not found")
        if sender["id"] not in group.get("members", []):
            logger.warning("Group send rejected: not a member", extra={"data": {"group_id": group_id}})
            raise Forbidden("You are not a member of this group")

        message = MessageModel(sender=sender["id"], group=group_id, content=content, created_at=self._clock())
        await self._store.insert(Collections.MESSAGES, message.model_dump())

        # Rebuilt from the current member list so membership changes reconcile here
        unread_counts = rebuild_unread_counts(group["members"], group.get("unread_counts"), sender["id"])
        await self._store.update_by_id(Collections.GROUPS, group_id, {"unread_counts": unread_counts})

        populated = await self.populate(message.model_dump())
        payload = {**populated, "group_id": group_id}
        group_name = group.get("name", "")
        sender_name = sender.get("name", "Someone")

        def render(count: int) -> str:
            if count == 1:
                return f"New message in group {group_name} from {sender_name}"
            return f"{count} new {_plural(count, 'message')} in group {group_name} from {sender_name}"

        event = FanoutEvent(
            kind=NotificationKinds.NEW_GROUP_MESSAGE,
            actor=sender["id"],
            audience=Audience.GROUP,
            related_id=group_id,
            refs=MessageRefs(kind=NotificationKinds.NEW_GROUP_MESSAGE, message_id=message.id, sender_id=sender["id"]),
            render=render,
            group=group,
            domain_event=RealtimeEvents.RECEIVE_MESSAGE,
            echo_actor=True,
        )
        await self._router.dispatch(event, payload)

        logger.info("Group message sent", extra={"data": {"message_id": message.id, "group_id": group_id}})
        return {**payload, "is_sent_by_me": True}

    async def _send_direct(self, sender: dict, receiver_id: str, content: str) -> Dict[str, Any]:
        if receiver_id == sender["id"]:
            raise InvalidInput("Cannot send a message to yourself")
        receiver = await self._store.find_by_id(Collections.USERS, receiver_id)
        if not receiver:
            raise NotFound("Receiver not found")
        if not await self.can_message(sender, receiver_id):
            logger.warning("Direct send rejected: no acquaintance or history", extra={"data": {"receiver_id": receiver_id}})
            raise Forbidden("You can only message acquaintances or reply to existing conversations")

        message = MessageModel(sender=sender["id"], receiver=receiver_id, content=content, created_at=self._clock())
        await self._store.insert(Collections.MESSAGES, message.model_dump())

        payload = await self.populate(message.model_dump())
        sender_name = sender.get("name", "Someone")

        def render(count: int) -> str:
            if count == 1:
                return f"New message from {sender_name}"
            return f"You received {count} {_plural(count, 'message')} from {sender_name}"

        event = FanoutEvent(
            kind=NotificationKinds.NEW_MESSAGE,
            actor=sender["id"],
            audience=Audience.DIRECT,
            related_id=sender["id"],
            refs=MessageRefs(kind=NotificationKinds.NEW_MESSAGE, message_id=message.id, sender_id=sender["id"]),
            render=render,
            recipient=receiver_id,
            domain_event=RealtimeEvents.RECEIVE_MESSAGE,
            echo_actor=True,
        )
        await self._router.dispatch(event, payload)

        logger.info("Direct message sent", extra={"data": {"message_id": message.id, "receiver_id": receiver_id}})
        return {**payload, "is_sent_by_me": True}

    # --- Authorization ---

    async def has_conversation(self, user_a: str, user_b: str) -> bool:
        return await self._store.exists(Collections.MESSAGES, {
            "$or": [
                {"sender": user_a, "receiver": user_b},
                {"sender": user_b, "receiver": user_a},
            ]
        })

    async def can_message(self, sender: dict, receiver_id: str) -> bool:
        """Faculty may message anyone; others need an acquaintance or an existing thread."""
        if sender.get("role") == Roles.FACULTY:
            return True
        if receiver_id in sender.get("acquaintances", []):
            return True
        return await self.has_conversation(sender["id"], receiver_id)

    # --- Read paths ---

    async def populate(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Read-after-write: replace user/group ids with their public shape."""
        populated = _strip_internal(message)
        populated["sender"] = public_user(await self._store.find_by_id(Collections.USERS, message["sender"]))
        if message.get("receiver"):
            populated["receiver"] = public_user(await self._store.find_by_id(Collections.USERS, message["receiver"]))
        if message.get("group"):
            group = await self._store.find_by_id(Collections.GROUPS, message["group"])
            populated["group"] = {"id": group["id"], "name": group.get("name")} if group else None
        return populated

    async def history(self, user_id: str, other_id: str) -> List[Dict[str, Any]]:
        user = await self._store.find_by_id(Collections.USERS, user_id)
        other = await self._store.find_by_id(Collections.USERS, other_id)
        if not user or not other:
            raise NotFound("User not found")
        if not await self.can_message(user, other_id):
            raise Forbidden("You can only view messages with acquaintances")

        messages = await self._store.find_many(
            Collections.MESSAGES,
            {"$or": [
                {"sender": user_id, "receiver": other_id},
                {"sender": other_id, "receiver": user_id},
            ]},
            sort=[("created_at", 1)],
        )
        people = {user_id: public_user(user), other_id: public_user(other)}
        return [
            {
                **_strip_internal(m),
                "sender": people.get(m["sender"]),
                "receiver": people.get(m["receiver"]),
                "is_sent_by_me": m["sender"] == user_id,
            }
            for m in messages
        ]

    async def group_history(self, user_id: str, group_id: str) -> List[Dict[str, Any]]:
        group = await self._store.find_by_id(Collections.GROUPS, group_id)
        if not group:
            raise NotFound("Group not found")
        if user_id not in group.get("members", []):
            raise Forbidden("You are not a member of this group")

        messages = await self._store.find_many(Collections.MESSAGES, {"group": group_id}, sort=[("created_at", 1)])
        sender_ids = list({m["sender"] for m in messages})
        senders = await self._store.find_many(Collections.USERS, {"id": {"$in": sender_ids}}) if sender_ids else []
        people = {s["id"]: public_user(s) for s in senders}
        return [
            {
                **_strip_internal(m),
                "sender": people.get(m["sender"]),
                "group": {"id": group_id, "name": group.get("name")},
                "is_sent_by_me": m["sender"] == user_id,
            }
            for m in messages
        ]

    async def conversations(self, user_id: str) -> List[Dict[str, Any]]:
        """Counterparts of ``user_id`` with the latest direct message exchanged with each."""
        user = await self._store.find_by_id(Collections.USERS, user_id)
        if not user:
            raise NotFound("User not found")

        messages = await self._store.find_many(
            Collections.MESSAGES,
            {"$or": [{"sender": user_id}, {"receiver": user_id}], "group": None},
            sort=[("created_at", -1)],
        )
        latest: Dict[str, dict] = {}
        for m in messages:
            other = m["receiver"] if m["sender"] == user_id else m["sender"]
            if other and other not in latest:
                latest[other] = m

        counterpart_ids = set(latest)
        if user.get("role") != Roles.FACULTY:
            counterpart_ids.update(user.get("acquaintances", []))
        if not counterpart_ids:
            return []

        counterparts = await self._store.find_many(Collections.USERS, {"id": {"$in": list(counterpart_ids)}})
        names = {user_id: user.get("name")}
        names.update({c["id"]: c.get("name") for c in counterparts})

        conversations = []
        for counterpart in counterparts:
            message = latest.get(counterpart["id"])
            conversations.append({
                "acquaintance": public_user(counterpart),
                "latest_message": {
                    "content": message["content"],
                    "created_at": message["created_at"],
                    "sender": names.get(message["sender"]),
                    "is_sent_by_me": message["sender"] == user_id,
                } if message else None,
            })
        return conversations
