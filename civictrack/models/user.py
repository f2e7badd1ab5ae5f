"""
User models for the identity collaborator.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from civictrack.models.base import CamelModel
from civictrack.models.issue import Pagination
from civictrack.utils.firestore_helpers import to_datetime


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Principal(BaseModel):
    """Caller identity as issued by the identity provider."""
    user_id: str
    role: UserRole = UserRole.USER
    is_banned: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserResponse(CamelModel):
    id: str = Field(..., description="Firestore document ID")
    username: Optional[str] = None
    email: Optional[str] = None
    role: UserRole = UserRole.USER
    is_banned: bool = False
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    banned_by: Optional[str] = None
    issues_reported: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "UserResponse":
        return cls(
            id=data["id"],
            username=data.get("username"),
            email=data.get("email"),
            role=data.get("role", UserRole.USER.value),
            is_banned=data.get("is_banned", False),
            ban_reason=data.get("ban_reason"),
            banned_at=to_datetime(data.get("banned_at")),
            banned_by=data.get("banned_by"),
            issues_reported=data.get("issues_reported", 0),
            created_at=to_datetime(data.get("created_at")),
        )


class UserPage(CamelModel):
    users: List[UserResponse]
    pagination: Pagination


class BanRequest(CamelModel):
    # Optional here so a missing reason reaches the service and gets a clear error
    reason: Optional[str] = Field(None, max_length=500)
