from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime, timezone
import uuid


class CommentModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user: str
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PostModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    author: str
    content: str
    tags: List[str] = Field(default_factory=list)
    likes: List[str] = Field(default_factory=list)
    dislikes: List[str] = Field(default_factory=list)
    comments: List[CommentModel] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PostCreateRequest(BaseModel):
    content: str
    tags: Optional[List[str]] = None


class CommentRequest(BaseModel):
    text: str = ""
