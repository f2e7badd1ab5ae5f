"""
Status Workflow Engine - strict issue lifecycle state machine.

DESIGN PRINCIPLES:
- Forward-only transitions; skipping In Progress is allowed
- Resolved is terminal
- Same-state requests are rejected, not treated as no-ops
- Every accepted transition appends one activity record
- This is the only code path that writes an issue's status
"""

from datetime import datetime
from typing import Dict, List, Optional
from firebase_admin import firestore
from google.api_core import exceptions as gexc
import logging

from civictrack.core.errors import InvalidTransition, NotFound, ValidationError
from civictrack.models.issue import Issue, IssueStatus, Priority
from civictrack.services.activity_service import ActivityService
from civictrack.utils.firestore_helpers import snapshot_to_dict

logger = logging.getLogger(__name__)

ISSUES_COLLECTION = "issues"


class StatusWorkflowEngine:
    """
    State machine for issue status transitions.

    Rules:
    - Reported → In Progress | Resolved
    - In Progress → Resolved
    - Resolved → (nothing)
    """

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[IssueStatus, List[IssueStatus]] = {
        IssueStatus.REPORTED: [IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED],
        IssueStatus.IN_PROGRESS: [IssueStatus.RESOLVED],
        IssueStatus.RESOLVED: [],  # Terminal state, no transitions allowed
    }

    def __init__(self, db, activity: ActivityService):
        self.db = db
        self.activity = activity

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is valid.

        Unknown status values are never valid.
        """
        try:
            from_enum = IssueStatus(from_status)
            to_enum = IssueStatus(to_status)
        except ValueError:
            return False
        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        """List of statuses reachable from current_status."""
        try:
            current_enum = IssueStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    def transition(
        self,
        issue_id: str,
        requested_status: str,
        acting_principal: Optional[str],
        note: Optional[str] = None,
        priority: Optional[str] = None,
        estimated_resolution_time: Optional[datetime] = None,
        admin_notes: Optional[str] = None,
    ) -> Issue:
        """
        Validate and apply a status transition.

        Args:
            issue_id: Firestore document ID
            requested_status: Desired new status
            acting_principal: Administrator making the change
            note: Optional note recorded on the activity entry
            priority / estimated_resolution_time / admin_notes: optional
                metadata updated alongside the status

        Returns:
            The updated issue

        Raises:
            NotFound: Issue does not exist
            ValidationError: Unknown status or priority value
            InvalidTransition: Edge not allowed from the current status
        """
        try:
            requested = IssueStatus(requested_status).value
        except ValueError:
            raise ValidationError(f"Unknown status: {requested_status}", field="status")
        if priority is not None:
            try:
                priority = Priority(priority).value
            except ValueError:
                raise ValidationError(f"Unknown priority: {priority}", field="priority")

        issue_ref = self.db.collection(ISSUES_COLLECTION).document(issue_id)
        snapshot = issue_ref.get()
        if not snapshot.exists:
            raise NotFound("Issue", issue_id)

        previous_status = snapshot.to_dict().get("status", IssueStatus.REPORTED.value)
        if not self.is_valid_transition(previous_status, requested):
            raise InvalidTransition(
                previous_status,
                requested,
                allowed=self.get_allowed_transitions(previous_status),
            )

        update_data = {
            "status": requested,
            "last_status_update": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        if priority:
            update_data["priority"] = priority
        if estimated_resolution_time:
            update_data["estimated_resolution_time"] = estimated_resolution_time
        if admin_notes:
            update_data["admin_notes"] = admin_notes

        try:
            issue_ref.update(update_data)
        except gexc.NotFound:
            # Deleted between the read and the write
            raise NotFound("Issue", issue_id)

        self.activity.append(
            issue_id,
            action=f"Status changed to {requested}",
            updated_by=acting_principal,
            note=note,
            metadata={
                "previous_status": previous_status,
                "priority": priority,
                "estimated_resolution_time": estimated_resolution_time,
                "admin_notes": admin_notes,
            },
        )

        logger.info(f"Issue {issue_id} status {previous_status} → {requested} by {acting_principal}")
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))
