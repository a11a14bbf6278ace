from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional
from datetime import datetime, timezone
import uuid


class MessageModel(BaseModel):
    """Direct or group message; exactly one of receiver/group is set."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sender: str
    receiver: Optional[str] = None
    group: Optional[str] = None
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="after")
    def exactly_one_target(self):
        if (self.receiver is None) == (self.group is None):
            raise ValueError("A message needs exactly one of receiver or group")
        return self


class SendMessageRequest(BaseModel):
    receiver_id: Optional[str] = None
    group_id: Optional[str] = None
    content: str = ""
