"""
Engagement Ledger - one upvote per user per issue.

The vote document ID is derived from (issue, user), so the store itself
enforces uniqueness: create() fails with AlreadyExists for a second vote.
The issue's upvote counter only moves by atomic Increment deltas, and only
after the vote document write it accounts for has succeeded.
"""

from firebase_admin import firestore
from google.api_core import exceptions as gexc
import logging

from civictrack.core.errors import Conflict, NotFound
from civictrack.models.issue import UpvoteResult
from civictrack.utils.firestore_helpers import delete_documents, where_filter

logger = logging.getLogger(__name__)

UPVOTES_COLLECTION = "upvotes"
ISSUES_COLLECTION = "issues"


def vote_document_id(issue_id: str, user_id: str) -> str:
    return f"{issue_id}__{user_id}"


class EngagementLedger:
    """Service for toggling upvotes and maintaining the upvote counter."""

    def __init__(self, db):
        self.db = db

    def has_upvoted(self, issue_id: str, user_id: str) -> bool:
        ref = self.db.collection(UPVOTES_COLLECTION).document(vote_document_id(issue_id, user_id))
        return ref.get().exists

    def toggle_upvote(self, issue_id: str, user_id: str) -> UpvoteResult:
        """
        Add the user's upvote if absent, remove it if present.

        Two toggles by the same user return the issue to its original
        state.

        Raises:
            NotFound: Issue does not exist
            Conflict: A concurrent toggle by the same user won the race
        """
        issue_ref = self.db.collection(ISSUES_COLLECTION).document(issue_id)
        if not issue_ref.get().exists:
            raise NotFound("Issue", issue_id)

        vote_ref = self.db.collection(UPVOTES_COLLECTION).document(vote_document_id(issue_id, user_id))

        if vote_ref.get().exists:
            try:
                # exists=True: only one of two racing deletes succeeds
                vote_ref.delete(option=self.db.write_option(exists=True))
            except gexc.NotFound:
                raise Conflict("Upvote was already removed", issue=issue_id)
            delta = -1
        else:
            try:
                vote_ref.create({
                    "user": user_id,
                    "issue": issue_id,
                    "created_at": firestore.SERVER_TIMESTAMP,
                })
            except gexc.AlreadyExists:
                raise Conflict("You have already upvoted this issue", issue=issue_id)
            delta = 1

        try:
            issue_ref.update({"upvotes": firestore.Increment(delta)})
        except gexc.NotFound:
            # Issue deleted mid-toggle; drop the vote the cascade may have missed
            if delta > 0:
                vote_ref.delete()
            raise NotFound("Issue", issue_id)
        upvotes = issue_ref.get().to_dict().get("upvotes", 0)

        logger.info(f"Upvote {'added' if delta > 0 else 'removed'}: issue={issue_id} user={user_id} upvotes={upvotes}")
        return UpvoteResult(upvoted=delta > 0, upvotes=upvotes)

    def delete_for_issue(self, issue_id: str) -> int:
        """Remove every vote record for an issue (issue deletion cascade)."""
        query = where_filter(self.db.collection(UPVOTES_COLLECTION), "issue", "==", issue_id)
        return delete_documents(self.db, [doc.reference for doc in query.stream()])
