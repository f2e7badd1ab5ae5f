"""
Activity Service - append-only audit trail for issue mutations.

Every state-changing operation appends exactly one record. Records are
never updated; they are removed only when their issue is deleted.
"""

from firebase_admin import firestore
from civictrack.models.activity import ActivityRecord
from civictrack.utils.firestore_helpers import delete_documents, snapshot_to_dict, where_filter
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

ACTIVITY_COLLECTION = "activity_logs"


class ActivityService:
    """Service for reading and appending activity records."""

    def __init__(self, db):
        self.db = db

    def append(
        self,
        issue_id: str,
        action: str,
        updated_by: Optional[str] = None,
        note: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Append one activity record.

        Args:
            issue_id: Issue the action applies to
            action: Human-readable action label
            updated_by: Acting principal (None for anonymous/system actions)
            note: Optional free-text note
            metadata: Optional structured details (previous status etc.)

        Returns:
            The new record's document ID
        """
        ref = self.db.collection(ACTIVITY_COLLECTION).document()
        ref.create({
            "issue": issue_id,
            "action": action,
            "note": note,
            "updated_by": updated_by,
            "metadata": {k: v for k, v in (metadata or {}).items() if v is not None},
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        logger.debug(f"Activity appended for issue {issue_id}: {action}")
        return ref.id

    def list_for_issue(self, issue_id: str) -> List[ActivityRecord]:
        """Activity timeline for an issue, newest first."""
        query = where_filter(self.db.collection(ACTIVITY_COLLECTION), "issue", "==", issue_id)
        records = [ActivityRecord.from_document(snapshot_to_dict(doc)) for doc in query.stream()]
        records.sort(key=lambda record: (record.created_at is not None, record.created_at), reverse=True)
        return records

    def delete_for_issue(self, issue_id: str) -> int:
        query = where_filter(self.db.collection(ACTIVITY_COLLECTION), "issue", "==", issue_id)
        return delete_documents(self.db, [doc.reference for doc in query.stream()])
