"""
Pydantic models for issues.
These models handle validation for issue submission and responses.
"""

from pydantic import Field, field_validator
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from civictrack.models.base import CamelModel
from civictrack.utils.firestore_helpers import to_datetime


class Category(str, Enum):
    ROAD = "Road"
    WATER = "Water"
    CLEANLINESS = "Cleanliness"
    LIGHTING = "Lighting"
    SAFETY = "Safety"


class IssueStatus(str, Enum):
    """
    Issue lifecycle.

    Reported → In Progress → Resolved, and Reported → Resolved.
    Resolved is terminal.
    """
    REPORTED = "Reported"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class GeoPoint(CamelModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)


class IssueCreate(CamelModel):
    """
    Model for creating a new issue (incoming POST request).
    These are the fields citizens provide when submitting an issue.
    """
    title: str = Field(..., min_length=1, max_length=100, description="Short summary")
    description: str = Field(..., min_length=1, max_length=1000, description="What the citizen observed")
    category: Category
    latitude: float = Field(..., ge=-90, le=90, description="Latitude coordinate")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude coordinate")
    address: Optional[str] = Field(None, max_length=500, description="Address entered by the citizen")
    is_anonymous: bool = Field(default=False, description="Hide the reporter's identity")

    @field_validator("title", "description")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("address")
    @classmethod
    def _blank_address_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class Issue(CamelModel):
    """
    Model for issue responses (what the API returns).
    Includes system-generated fields like ID, counters and timestamps.
    """
    id: str = Field(..., description="Firestore document ID")
    title: str
    description: str
    category: Category
    status: IssueStatus = IssueStatus.REPORTED
    is_visible: bool = True
    user: Optional[str] = Field(None, description="Reporter principal id (never set for anonymous issues)")
    is_anonymous: bool = False
    location: GeoPoint
    address: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    views: int = 0
    upvotes: int = 0
    spam_votes: int = 0
    priority: Priority = Priority.MEDIUM
    estimated_resolution_time: Optional[datetime] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    last_status_update: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    distance: Optional[float] = Field(None, description="Meters from the query center (nearby listings only)")

    @classmethod
    def from_document(cls, data: Dict[str, Any], distance: Optional[float] = None) -> "Issue":
        location = data.get("location") or {}
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=data.get("category"),
            status=data.get("status", IssueStatus.REPORTED.value),
            is_visible=data.get("is_visible", True),
            user=None if data.get("is_anonymous") else data.get("user"),
            is_anonymous=data.get("is_anonymous", False),
            location=GeoPoint(
                longitude=location.get("longitude", 0.0),
                latitude=location.get("latitude", 0.0),
            ),
            address=data.get("address"),
            images=data.get("images") or [],
            views=data.get("views", 0),
            upvotes=data.get("upvotes", 0),
            spam_votes=data.get("spam_votes", 0),
            priority=data.get("priority", Priority.MEDIUM.value),
            estimated_resolution_time=to_datetime(data.get("estimated_resolution_time")),
            admin_notes=data.get("admin_notes"),
            created_at=to_datetime(data.get("created_at")),
            last_status_update=to_datetime(data.get("last_status_update")),
            updated_at=to_datetime(data.get("updated_at")),
            distance=round(distance, 1) if distance is not None else None,
        )


class StatusUpdateRequest(CamelModel):
    """Request to move an issue along its lifecycle."""
    status: IssueStatus = Field(..., description="Requested status")
    note: Optional[str] = Field(None, max_length=500, description="Optional note explaining the change")
    priority: Optional[Priority] = None
    estimated_resolution_time: Optional[datetime] = None
    admin_notes: Optional[str] = Field(None, max_length=1000)


class AdminNotesRequest(CamelModel):
    admin_notes: str = Field(..., min_length=1, max_length=1000)


class HideRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class Pagination(CamelModel):
    """Pagination envelope returned by every list operation."""
    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool


class IssuePage(CamelModel):
    issues: List[Issue]
    pagination: Pagination


class UpvoteResult(CamelModel):
    upvoted: bool
    upvotes: int
