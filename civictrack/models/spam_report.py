"""
Pydantic models for community spam reports.
"""

from pydantic import Field
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from civictrack.models.base import CamelModel
from civictrack.models.issue import Pagination
from civictrack.utils.firestore_helpers import to_datetime


class SpamReason(str, Enum):
    FAKE_REPORT = "Fake Report"
    INAPPROPRIATE_CONTENT = "Inappropriate Content"
    DUPLICATE = "Duplicate"
    SPAM = "Spam"
    OTHER = "Other"


class SpamReportStatus(str, Enum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    ACTION_TAKEN = "Action Taken"
    DISMISSED = "Dismissed"


# Decisions an administrator may record when reviewing a report
REVIEW_DECISIONS = (
    SpamReportStatus.REVIEWED,
    SpamReportStatus.ACTION_TAKEN,
    SpamReportStatus.DISMISSED,
)


class SpamReportCreate(CamelModel):
    reason: SpamReason
    description: Optional[str] = Field(None, max_length=500)


class SpamReviewRequest(CamelModel):
    # Plain str: the moderation policy owns decision validation
    status: str = Field(..., description="Reviewed, Action Taken or Dismissed")
    action_taken: Optional[str] = Field(None, max_length=500)


class SpamReport(CamelModel):
    id: str
    issue: str
    reported_by: str
    reason: SpamReason
    description: Optional[str] = None
    status: SpamReportStatus = SpamReportStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    action_taken: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "SpamReport":
        return cls(
            id=data["id"],
            issue=data.get("issue"),
            reported_by=data.get("reported_by"),
            reason=data.get("reason"),
            description=data.get("description"),
            status=data.get("status", SpamReportStatus.PENDING.value),
            reviewed_by=data.get("reviewed_by"),
            reviewed_at=to_datetime(data.get("reviewed_at")),
            action_taken=data.get("action_taken"),
            created_at=to_datetime(data.get("created_at")),
        )


class SpamResult(CamelModel):
    spam_count: int
    hidden: bool


class SpamReportPage(CamelModel):
    reports: List[SpamReport]
    pagination: Pagination


class RecentSpamReport(CamelModel):
    """A spam report joined with its issue title and reporter name."""
    id: str
    issue: str
    issue_title: Optional[str] = None
    reported_by: str
    reporter_username: Optional[str] = None
    reason: SpamReason
    status: SpamReportStatus = SpamReportStatus.PENDING
    created_at: Optional[datetime] = None


class SpamSummary(CamelModel):
    reason_breakdown: Dict[str, int]
    status_breakdown: Dict[str, int]
    total_reports: int
    hidden_issues: int
    recent_reports: List[RecentSpamReport] = []
