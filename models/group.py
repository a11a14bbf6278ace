from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, List, Optional
from datetime import datetime, timezone
import uuid


class GroupModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    creator: str
    members: List[str] = Field(default_factory=list)
    # One entry per member, kept in sync with members
    unread_counts: Dict[str, int] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def rebuild_unread_counts(members: List[str], previous: Optional[Dict[str, int]], sender: str) -> Dict[str, int]:
    """Rebuild counters wholesale after a group send: sender resets, everyone else +1."""
    previous = previous or {}
    return {
        member: 0 if member == sender else previous.get(member, 0) + 1
        for member in members
    }


class GroupCreateRequest(BaseModel):
    name: str
    member_ids: List[str] = Field(default_factory=list)


class GroupMemberRequest(BaseModel):
    member_id: str
