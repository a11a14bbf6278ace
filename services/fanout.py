"""
Fan-out router.

Resolves who an event is for (one user, the members of a group, or every
admin) and pushes both the domain event and a per-recipient notification
upsert through the realtime transport.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel

from constants import Collections, Roles
from database import Store
from errors import InvalidInput, NoRecipients, TransportFailure
from logging_config import get_logger
from models.notification import NotificationModel
from services.notifications import NotificationAggregator, Renderer

logger = get_logger("fanout")


class Audience(str, Enum):
    DIRECT = "direct"
    GROUP = "group"
    ADMINS = "admins"


@dataclass
class FanoutEvent:
    kind: str
    actor: str
    audience: Audience
    related_id: Optional[str]
    refs: BaseModel
    render: Renderer
    recipient: Optional[str] = None       # DIRECT
    group: Optional[Dict[str, Any]] = None  # GROUP: the group document
    domain_event: Optional[str] = None
    # Also push the domain event to the actor's own channel (other sessions of the sender)
    echo_actor: bool = False


class FanoutRouter:
    def __init__(self, store: Store, transport, notifier: NotificationAggregator):
        self._store = store
        self._transport = transport
        self._notifier = notifier

    async def resolve_recipients(self, event: FanoutEvent) -> Set[str]:
        if event.audience == Audience.DIRECT:
            if not event.recipient:
                raise InvalidInput("Recipient is required")
            return {event.recipient}

        if event.audience == Audience.GROUP:
            if not event.group:
                raise InvalidInput("Group is required")
            return {member for member in event.group.get("members", []) if member != event.actor}

        admins = await self._store.find_many(Collections.USERS, {"role": Roles.ADMIN})
        recipients = {admin["id"] for admin in admins}
        if not recipients:
            logger.warning(f"No admins to notify for {event.kind}", extra={"data": {"actor": event.actor}})
            raise NoRecipients()
        return recipients

    async def dispatch(
        self,
        event: FanoutEvent,
        payload: Optional[Dict[str, Any]] = None,
        recipients: Optional[Iterable[str]] = None,
    ) -> List[NotificationModel]:
        """
        Emit ``event.domain_event`` (when set) and upsert one notification per recipient.

        Every emission is attempted even if an earlier one failed; storage errors
        stop the chain immediately, transport errors are raised once all
        recipients have been attempted.
        """
        if recipients is None:
            recipients = await self.resolve_recipients(event)
        targets = sorted(set(recipients))
        failed = 0

        if event.domain_event and payload is not None:
            audience = list(targets)
            if event.echo_actor and event.actor not in audience:
                audience.append(event.actor)
            for channel_id in audience:
                frame = {**payload, "is_sent_by_me": channel_id == event.actor}
                try:
                    await self._transport.emit(channel_id, event.domain_event, frame)
                except Exception:
                    failed += 1
                    logger.error(f"Failed to emit {event.domain_event}", exc_info=True, extra={"data": {"channel": channel_id}})

        notifications = []
        for recipient in targets:
            try:
                notifications.append(
                    await self._notifier.upsert(recipient, event.kind, event.related_id, event.render, event.refs)
                )
            except TransportFailure:
                failed += 1

        logger.info(
            f"Fan-out {event.kind} to {len(targets)} recipient(s)",
            extra={"data": {"audience": event.audience.value, "actor": event.actor, "related_id": event.related_id}}
        )
        if failed:
            raise TransportFailure()
        return notifications
