"""
Moderation Policy - community spam signals and administrator overrides.

DESIGN PRINCIPLES:
- One spam report per (reporter, issue), enforced by the store: the report
  document ID is derived from both, and create() rejects a second one
- spam_votes only moves by atomic Increment: +1 per stored report, -1 per
  removed report (in the same batch), so it always equals the reports on file
- Auto-hide compares the current count with the injected threshold and is
  written with a last_update_time precondition, so a stale decision cannot
  undo a concurrent restore
- Only administrators make issues visible again (show / restore)
"""

from collections import Counter
from firebase_admin import firestore
from google.api_core import exceptions as gexc
from typing import List, Optional, Tuple
import logging

from civictrack.core.errors import Conflict, ExternalServiceError, NotFound, ValidationError
from civictrack.core.settings import ADMIN_MAX_LIMIT
from civictrack.models.issue import Issue
from civictrack.models.spam_report import (
    REVIEW_DECISIONS,
    RecentSpamReport,
    SpamReason,
    SpamReport,
    SpamReportPage,
    SpamReportStatus,
    SpamResult,
    SpamSummary,
)
from civictrack.services.activity_service import ActivityService
from civictrack.services.geo_query import build_pagination
from civictrack.utils.firestore_helpers import (
    count_query,
    delete_documents,
    snapshot_to_dict,
    to_datetime,
    where_filter,
)

logger = logging.getLogger(__name__)

SPAM_REPORTS_COLLECTION = "spam_reports"
ISSUES_COLLECTION = "issues"
USERS_COLLECTION = "users"

# Conditional hide retries before giving up on a hot issue
MAX_HIDE_ATTEMPTS = 5

# Reports shown in the spam summary
RECENT_REPORTS_LIMIT = 10


def spam_report_document_id(issue_id: str, reporter_id: str) -> str:
    return f"{issue_id}__{reporter_id}"


class ModerationPolicy:
    """
    Decides issue visibility from spam reports and applies admin overrides.
    """

    def __init__(self, db, activity: ActivityService, spam_threshold: int):
        if spam_threshold < 1:
            raise ValueError("spam_threshold must be at least 1")
        self.db = db
        self.activity = activity
        self.spam_threshold = spam_threshold

    def _issue_ref(self, issue_id: str):
        return self.db.collection(ISSUES_COLLECTION).document(issue_id)

    def _require_issue(self, issue_id: str):
        ref = self._issue_ref(issue_id)
        snapshot = ref.get()
        if not snapshot.exists:
            raise NotFound("Issue", issue_id)
        return ref, snapshot

    # Community reports

    def record_spam_report(
        self,
        issue_id: str,
        reporter_id: str,
        reason: str,
        description: Optional[str] = None,
    ) -> SpamResult:
        """
        Record a spam report and auto-hide the issue at the threshold.

        Returns:
            SpamResult with the new spam count and whether the issue is hidden

        Raises:
            ValidationError: Unknown reason
            NotFound: Issue does not exist
            Conflict: Reporter already reported this issue (no changes made)
        """
        try:
            reason = SpamReason(reason).value
        except ValueError:
            raise ValidationError(f"Unknown spam reason: {reason}", field="reason")

        issue_ref, _ = self._require_issue(issue_id)

        report_ref = self.db.collection(SPAM_REPORTS_COLLECTION).document(
            spam_report_document_id(issue_id, reporter_id)
        )
        try:
            report_ref.create({
                "issue": issue_id,
                "reported_by": reporter_id,
                "reason": reason,
                "description": description,
                "status": SpamReportStatus.PENDING.value,
                "reviewed_by": None,
                "reviewed_at": None,
                "action_taken": None,
                "created_at": firestore.SERVER_TIMESTAMP,
            })
        except gexc.AlreadyExists:
            raise Conflict("You have already reported this issue as spam", issue=issue_id)

        try:
            issue_ref.update({"spam_votes": firestore.Increment(1)})
        except gexc.NotFound:
            # Issue deleted between the check and the increment; drop the orphan report
            report_ref.delete()
            raise NotFound("Issue", issue_id)

        spam_count, hidden, hidden_now = self._apply_threshold(issue_id, issue_ref)
        if hidden_now:
            self.activity.append(
                issue_id,
                action="Issue auto-hidden",
                note=f"Spam reports reached threshold ({spam_count}/{self.spam_threshold})",
                metadata={"spam_votes": spam_count},
            )
            logger.warning(f"Issue {issue_id} auto-hidden after {spam_count} spam reports")

        logger.info(f"Spam report recorded: issue={issue_id} reporter={reporter_id} reason={reason} count={spam_count}")
        return SpamResult(spam_count=spam_count, hidden=hidden)

    def _apply_threshold(self, issue_id: str, issue_ref) -> Tuple[int, bool, bool]:
        """
        Hide the issue if its current spam count has reached the threshold.

        The hide only applies to the exact snapshot it was decided from
        (last_update_time precondition). If a restore, show or any other
        write lands in between, the decision is taken again on fresh data.

        Returns:
            (spam_count, hidden, hidden_by_this_call)
        """
        for _ in range(MAX_HIDE_ATTEMPTS):
            snapshot = issue_ref.get()
            if not snapshot.exists:
                raise NotFound("Issue", issue_id)
            data = snapshot.to_dict()
            spam_count = data.get("spam_votes", 0)
            hidden = not data.get("is_visible", True)
            if hidden or spam_count < self.spam_threshold:
                return spam_count, hidden, False
            try:
                issue_ref.update(
                    {"is_visible": False, "updated_at": firestore.SERVER_TIMESTAMP},
                    option=self.db.write_option(last_update_time=snapshot.update_time),
                )
            except gexc.FailedPrecondition:
                logger.info(f"Issue {issue_id} changed while applying the spam threshold; re-reading")
                continue
            except gexc.NotFound:
                raise NotFound("Issue", issue_id)
            return spam_count, True, True
        raise ExternalServiceError("store", "Issue kept changing while applying the spam threshold")

    def review_spam_report(
        self,
        report_id: str,
        decision: str,
        reviewer_id: str,
        action_taken: Optional[str] = None,
    ) -> SpamReport:
        """
        Record an administrator's decision on a spam report.

        Metadata only: the issue's visibility is not touched.

        Raises:
            ValidationError: Decision is not Reviewed, Action Taken or Dismissed
            NotFound: Report does not exist
        """
        allowed = [status.value for status in REVIEW_DECISIONS]
        if decision not in allowed:
            raise ValidationError(
                f"Invalid review status: {decision}. Allowed: {allowed}",
                field="status",
            )

        ref = self.db.collection(SPAM_REPORTS_COLLECTION).document(report_id)
        try:
            ref.update({
                "status": decision,
                "action_taken": action_taken,
                "reviewed_by": reviewer_id,
                "reviewed_at": firestore.SERVER_TIMESTAMP,
            })
        except gexc.NotFound:
            raise NotFound("Spam report", report_id)

        logger.info(f"Spam report {report_id} reviewed by {reviewer_id}: {decision}")
        return SpamReport.from_document(snapshot_to_dict(ref.get()))

    # Administrator overrides

    def hide(self, issue_id: str, reason: Optional[str], admin_id: str) -> Issue:
        """Hide an issue regardless of its spam count."""
        issue_ref, _ = self._require_issue(issue_id)
        issue_ref.update({"is_visible": False, "updated_at": firestore.SERVER_TIMESTAMP})
        self.activity.append(
            issue_id,
            action="Issue hidden",
            updated_by=admin_id,
            note=reason,
            metadata={"reason": reason},
        )
        logger.info(f"Issue {issue_id} hidden by {admin_id}")
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))

    def show(self, issue_id: str, admin_id: str) -> Issue:
        """Make an issue visible again, keeping its spam reports on file."""
        issue_ref, _ = self._require_issue(issue_id)
        issue_ref.update({"is_visible": True, "updated_at": firestore.SERVER_TIMESTAMP})
        self.activity.append(issue_id, action="Issue made visible", updated_by=admin_id)
        logger.info(f"Issue {issue_id} made visible by {admin_id}")
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))

    def restore(self, issue_id: str, admin_id: str) -> Issue:
        """
        Restore a hidden issue: reports cleared, spam count back down, visible again.

        spam_votes is never overwritten. Each cleared report takes its own
        unit with it, so a report filed while the restore runs stays on
        file and stays counted. Status is not changed.
        """
        issue_ref, _ = self._require_issue(issue_id)

        cleared = self.delete_reports_for_issue(issue_id)
        try:
            issue_ref.update({"is_visible": True, "updated_at": firestore.SERVER_TIMESTAMP})
        except gexc.NotFound:
            raise NotFound("Issue", issue_id)
        self.activity.append(
            issue_id,
            action="Issue restored",
            updated_by=admin_id,
            note="Issue manually restored by admin",
            metadata={"cleared_spam_reports": cleared},
        )
        logger.info(f"Issue {issue_id} restored by {admin_id}; cleared {cleared} spam reports")
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))

    def delete_reports_for_issue(self, issue_id: str) -> int:
        """
        Remove the spam reports on file for an issue. Returns how many went.

        Each report is deleted in one batch with its spam_votes decrement.
        A report someone else already removed is skipped along with its
        decrement.
        """
        issue_ref = self._issue_ref(issue_id)
        query = where_filter(self.db.collection(SPAM_REPORTS_COLLECTION), "issue", "==", issue_id)
        refs = [doc.reference for doc in query.stream()]
        if not issue_ref.get().exists:
            # Nothing left to keep consistent with
            return delete_documents(self.db, refs)

        removed = 0
        for position, ref in enumerate(refs):
            batch = self.db.batch()
            batch.delete(ref, option=self.db.write_option(exists=True))
            batch.update(issue_ref, {"spam_votes": firestore.Increment(-1)})
            try:
                batch.commit()
            except gexc.NotFound:
                if not issue_ref.get().exists:
                    return removed + delete_documents(self.db, refs[position:])
                logger.info(f"Spam report {ref.id} was already removed")
                continue
            removed += 1
        return removed

    # Moderator views

    def list_spam_reports(self, status: Optional[str] = None, page: int = 1, limit: int = 20) -> SpamReportPage:
        """Spam reports, newest first, optionally filtered by review status."""
        if status is not None:
            try:
                status = SpamReportStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown spam report status: {status}", field="status")

        page = max(1, page)
        limit = min(ADMIN_MAX_LIMIT, max(1, limit))

        query = self.db.collection(SPAM_REPORTS_COLLECTION)
        if status:
            query = where_filter(query, "status", "==", status)

        total = count_query(query)
        docs = (
            query.order_by("created_at", direction=firestore.Query.DESCENDING)
            .offset((page - 1) * limit)
            .limit(limit)
            .stream()
        )
        reports = [SpamReport.from_document(snapshot_to_dict(doc)) for doc in docs]

        return SpamReportPage(reports=reports, pagination=build_pagination(page, limit, total))

    def spam_summary(self) -> SpamSummary:
        """Raw report counts by reason and by review status, plus the latest reports."""
        reasons: Counter = Counter()
        statuses: Counter = Counter()
        for doc in self.db.collection(SPAM_REPORTS_COLLECTION).stream():
            data = doc.to_dict()
            reasons[data.get("reason", SpamReason.OTHER.value)] += 1
            statuses[data.get("status", SpamReportStatus.PENDING.value)] += 1

        hidden = count_query(where_filter(self.db.collection(ISSUES_COLLECTION), "is_visible", "==", False))
        return SpamSummary(
            reason_breakdown=dict(reasons.most_common()),
            status_breakdown=dict(statuses),
            total_reports=sum(reasons.values()),
            hidden_issues=hidden,
            recent_reports=self._recent_reports(),
        )

    def _recent_reports(self) -> List[RecentSpamReport]:
        docs = (
            self.db.collection(SPAM_REPORTS_COLLECTION)
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(RECENT_REPORTS_LIMIT)
            .stream()
        )
        titles = {}
        usernames = {}
        recent = []
        for doc in docs:
            data = snapshot_to_dict(doc)
            issue_id = data.get("issue")
            reporter_id = data.get("reported_by")
            if issue_id not in titles:
                issue = self._issue_ref(issue_id).get()
                titles[issue_id] = issue.to_dict().get("title") if issue.exists else None
            if reporter_id not in usernames:
                user = self.db.collection(USERS_COLLECTION).document(reporter_id).get()
                usernames[reporter_id] = user.to_dict().get("username") if user.exists else None
            recent.append(RecentSpamReport(
                id=data["id"],
                issue=issue_id,
                issue_title=titles[issue_id],
                reported_by=reporter_id,
                reporter_username=usernames[reporter_id],
                reason=data.get("reason", SpamReason.OTHER.value),
                status=data.get("status", SpamReportStatus.PENDING.value),
                created_at=to_datetime(data.get("created_at")),
            ))
        return recent
