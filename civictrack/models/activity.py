"""
Activity record model (append-only audit trail).
"""

from pydantic import Field
from datetime import datetime
from typing import Any, Dict, Optional

from civictrack.models.base import CamelModel
from civictrack.utils.firestore_helpers import to_datetime


class ActivityRecord(CamelModel):
    id: str
    issue: str
    action: str = Field(..., description="Human-readable action label")
    note: Optional[str] = None
    updated_by: Optional[str] = Field(None, description="Acting principal; null for anonymous/system actions")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "ActivityRecord":
        return cls(
            id=data["id"],
            issue=data.get("issue"),
            action=data.get("action", ""),
            note=data.get("note"),
            updated_by=data.get("updated_by"),
            metadata=data.get("metadata") or {},
            created_at=to_datetime(data.get("created_at")),
        )
