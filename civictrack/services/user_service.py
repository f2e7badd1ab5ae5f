"""
User Service - the engine's view of the identity collaborator's user records.

The engine reads role and ban flag to build a Principal, maintains the
per-user issue counter, applies administrator ban/unban decisions and
lists users for the admin console.
"""

from firebase_admin import firestore
from google.api_core import exceptions as gexc
from datetime import datetime, timezone
from typing import Optional
import logging

from civictrack.core.errors import NotFound, ValidationError
from civictrack.core.settings import ADMIN_MAX_LIMIT
from civictrack.models.user import Principal, UserPage, UserResponse, UserRole
from civictrack.services.geo_query import build_pagination
from civictrack.utils.firestore_helpers import snapshot_to_dict, to_datetime, where_filter

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class UserService:
    """
    Service for user records in Firestore.
    """

    def __init__(self, db):
        self.db = db

    def get_user(self, user_id: str) -> Optional[UserResponse]:
        doc = self.db.collection(USERS_COLLECTION).document(user_id).get()
        if not doc.exists:
            return None
        return UserResponse.from_document(snapshot_to_dict(doc))

    def get_principal(self, user_id: str) -> Principal:
        """
        Resolve a caller id to a Principal.

        Ids unknown to the store are treated as plain citizens: the identity
        provider has already authenticated them.
        """
        user = self.get_user(user_id)
        if user is None:
            return Principal(user_id=user_id)
        return Principal(user_id=user_id, role=UserRole(user.role), is_banned=user.is_banned)

    def list_users(
        self,
        search: Optional[str] = None,
        is_banned: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> UserPage:
        """
        Users for the admin console, newest first.

        search matches username or email, case-insensitively. Users without
        a created_at sort last.
        """
        page = max(1, page)
        limit = min(ADMIN_MAX_LIMIT, max(1, limit))

        query = self.db.collection(USERS_COLLECTION)
        if is_banned is not None:
            query = where_filter(query, "is_banned", "==", is_banned)
        records = [snapshot_to_dict(doc) for doc in query.stream()]

        needle = (search or "").strip().lower()
        if needle:
            records = [
                data for data in records
                if needle in (data.get("username") or "").lower()
                or needle in (data.get("email") or "").lower()
            ]

        records.sort(key=lambda data: data["id"])
        records.sort(key=lambda data: to_datetime(data.get("created_at")) or _OLDEST, reverse=True)

        start = (page - 1) * limit
        users = [UserResponse.from_document(data) for data in records[start:start + limit]]
        return UserPage(users=users, pagination=build_pagination(page, limit, len(records)))

    def adjust_issue_count(self, user_id: str, delta: int) -> None:
        """Atomically move the user's issues_reported counter by delta."""
        ref = self.db.collection(USERS_COLLECTION).document(user_id)
        try:
            ref.update({"issues_reported": firestore.Increment(delta)})
        except gexc.NotFound:
            logger.warning(f"Issue count not updated: user {user_id} has no record")

    def ban(self, user_id: str, reason: Optional[str], admin_id: str) -> UserResponse:
        """
        Ban a user.

        Raises:
            ValidationError: Missing reason
            NotFound: Unknown user
        """
        if not reason or not reason.strip():
            raise ValidationError("Ban reason is required", field="reason")
        return self._update(user_id, {
            "is_banned": True,
            "ban_reason": reason.strip(),
            "banned_at": firestore.SERVER_TIMESTAMP,
            "banned_by": admin_id,
        }, action="banned")

    def unban(self, user_id: str) -> UserResponse:
        return self._update(user_id, {
            "is_banned": False,
            "ban_reason": None,
            "banned_at": None,
            "banned_by": None,
        }, action="unbanned")

    def _update(self, user_id: str, update_data: dict, action: str) -> UserResponse:
        ref = self.db.collection(USERS_COLLECTION).document(user_id)
        try:
            ref.update(update_data)
        except gexc.NotFound:
            raise NotFound("User", user_id)
        logger.info(f"User {user_id} {action}")
        return UserResponse.from_document(snapshot_to_dict(ref.get()))
