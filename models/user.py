from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import Optional, Literal, List
from datetime import datetime, timezone
import uuid

DEFAULT_PROFILE_PICTURE = "/uploads/profile_pics/default-profile-pic.jpg"


class UserModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: EmailStr
    name: str
    role: Literal['Student', 'Faculty', 'Admin'] = "Student"
    branch: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    profile_picture: str = DEFAULT_PROFILE_PICTURE
    # Symmetric: if A lists B, B lists A
    acquaintances: List[str] = Field(default_factory=list)
    banned: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore"
    )


def public_user(doc: Optional[dict]) -> Optional[dict]:
    """Subset of a user document that is safe to embed in other payloads."""
    if not doc:
        return None
    return {
        "id": doc["id"],
        "name": doc.get("name"),
        "email": doc.get("email"),
        "profile_picture": doc.get("profile_picture", DEFAULT_PROFILE_PICTURE),
    }
