from pydantic import BaseModel, Field, ConfigDict
from typing import Literal, Optional
from datetime import datetime, timezone
import uuid


class BanRequestModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    requester: str  # Faculty member filing the request
    user_to_ban: str
    reason: str
    post: Optional[str] = None  # Offending post, when there is one
    status: Literal['pending', 'approved', 'rejected'] = 'pending'
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BanRequestCreate(BaseModel):
    user_to_ban: str = ""
    reason: str = ""
    post: Optional[str] = None
