from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Annotated, Optional, Literal, Union
from datetime import datetime, timedelta, timezone
import uuid

from config import config

NotificationKind = Literal[
    'new_message',
    'new_group_message',
    'friend_request',
    'friend_request_accepted',
    'friend_request_declined',
    'like',
    'comment',
    'dislike',
    'ban_request',
    'ban_request_approved',
    'ban_request_rejected',
]


# --- References, one variant per kind ---

class MessageRefs(BaseModel):
    kind: Literal['new_message', 'new_group_message']
    message_id: str
    sender_id: str


class FriendRequestRefs(BaseModel):
    kind: Literal['friend_request']
    request_id: str
    sender_id: str


class FriendDecisionRefs(BaseModel):
    kind: Literal['friend_request_accepted', 'friend_request_declined']
    sender_id: str  # The user who accepted or declined


class PostReactionRefs(BaseModel):
    kind: Literal['like', 'dislike']
    post_id: str
    sender_id: str


class CommentRefs(BaseModel):
    kind: Literal['comment']
    post_id: str
    comment_id: str
    sender_id: str


class BanRequestRefs(BaseModel):
    kind: Literal['ban_request', 'ban_request_approved', 'ban_request_rejected']
    ban_request_id: str
    sender_id: Optional[str] = None  # Requester for ban_request, deciding admin otherwise


NotificationRefs = Annotated[
    Union[MessageRefs, FriendRequestRefs, FriendDecisionRefs, PostReactionRefs, CommentRefs, BanRequestRefs],
    Field(discriminator="kind"),
]


class NotificationModel(BaseModel):
    """In-app notification, aggregated per (recipient, kind, related_id)."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    recipient: str  # Who receives the notification
    kind: NotificationKind

    # Rendered on every aggregation update
    text: str

    # Subject of the notification: the other user, the group, the post...
    related_id: Optional[str] = None
    refs: NotificationRefs

    # State
    count: int = 1
    read: bool = False
    viewed: bool = False
    # Reset on every aggregation update; the expiry clock restarts with it
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def refs_match_kind(self):
        if self.refs.kind != self.kind:
            raise ValueError(f"refs of kind '{self.refs.kind}' cannot describe a '{self.kind}' notification")
        return self

    def expires_at(self) -> datetime:
        return expiry_deadline(self.created_at, self.viewed)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) > self.expires_at()


# --- Expiry policy ---

def as_utc(value: datetime) -> datetime:
    """Mongo hands back naive datetimes; they are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def expiry_deadline(created_at: datetime, viewed: bool) -> datetime:
    days = config.NOTIFICATION_VIEWED_TTL_DAYS if viewed else config.NOTIFICATION_TTL_DAYS
    return as_utc(created_at) + timedelta(days=days)


def is_expired(doc: dict, now: datetime) -> bool:
    """Expiry check on a raw notification document."""
    return as_utc(now) > expiry_deadline(doc["created_at"], bool(doc.get("viewed")))
