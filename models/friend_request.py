from pydantic import BaseModel, Field, ConfigDict
from typing import Literal
from datetime import datetime, timezone
import uuid


class FriendRequestModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    from_user: str
    to_user: str
    status: Literal['pending', 'accepted', 'declined'] = 'pending'
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
