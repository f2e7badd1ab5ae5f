"""
Typed filter records for issue listings.

One record per listing endpoint. Routes build them from query
parameters; the geo query builder validates them once and lowers
them to a store query plus in-process predicates.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import ClassVar, Optional
from enum import Enum

from civictrack.core.settings import (
    ADMIN_DEFAULT_LIMIT,
    ADMIN_MAX_LIMIT,
    DEFAULT_NEARBY_DISTANCE_METERS,
    PUBLIC_DEFAULT_LIMIT,
    PUBLIC_MAX_LIMIT,
)
from civictrack.models.issue import Category, IssueStatus, Priority
from civictrack.utils.firestore_helpers import to_datetime


class SortField(str, Enum):
    CREATED_AT = "createdAt"
    UPVOTES = "upvotes"
    VIEWS = "views"
    SPAM_VOTES = "spamVotes"
    DISTANCE = "distance"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SpamBucket(str, Enum):
    NONE = "none"      # no spam reports
    MEDIUM = "medium"  # reported, below the auto-hide threshold
    HIGH = "high"      # at or above the auto-hide threshold


class GeoQuery(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    distance: float = Field(DEFAULT_NEARBY_DISTANCE_METERS, gt=0, description="Radius in meters")


class IssueListFilter(BaseModel):
    """Filters accepted by the public issue listing."""

    MAX_LIMIT: ClassVar[int] = PUBLIC_MAX_LIMIT

    category: Optional[Category] = None
    status: Optional[IssueStatus] = None
    is_anonymous: Optional[bool] = None
    search: Optional[str] = None
    geo: Optional[GeoQuery] = None
    sort: SortField = SortField.CREATED_AT
    order: SortOrder = SortOrder.DESC
    page: int = 1
    limit: int = PUBLIC_DEFAULT_LIMIT

    @field_validator("page")
    @classmethod
    def _floor_page(cls, value: int) -> int:
        return max(1, value)

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        return min(cls.MAX_LIMIT, max(1, value))

    @field_validator("search")
    @classmethod
    def _blank_search_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class AdminIssueFilter(IssueListFilter):
    """
    Filters accepted by the admin issue listing.

    Visibility is only filtered when is_visible is given, so hidden
    issues can be audited.
    """

    MAX_LIMIT: ClassVar[int] = ADMIN_MAX_LIMIT

    is_visible: Optional[bool] = None
    spam_votes: Optional[SpamBucket] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    priority: Optional[Priority] = None
    limit: int = ADMIN_DEFAULT_LIMIT

    @model_validator(mode="after")
    def _check_date_range(self) -> "AdminIssueFilter":
        if self.date_from and self.date_to and to_datetime(self.date_from) > to_datetime(self.date_to):
            raise ValueError("dateFrom must not be after dateTo")
        return self
