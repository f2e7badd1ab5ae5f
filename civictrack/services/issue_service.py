"""
Issue Lifecycle Service - orchestrates create, read, status change and
delete for issues.

Counters and visibility are never written here directly except for the
view counter: upvotes belong to the EngagementLedger, spam votes and
visibility to the ModerationPolicy, status to the StatusWorkflowEngine.
"""

from datetime import datetime
from firebase_admin import firestore
from google.api_core import exceptions as gexc
from typing import List, Optional
import logging

from civictrack.core.errors import AuthorizationError, ExternalServiceError, NotFound, ValidationError
from civictrack.core.settings import DEFAULT_NEARBY_DISTANCE_METERS
from civictrack.models.activity import ActivityRecord
from civictrack.models.filters import AdminIssueFilter, GeoQuery, IssueListFilter, SortField, SortOrder
from civictrack.models.issue import Issue, IssueCreate, IssuePage, IssueStatus, Priority, UpvoteResult
from civictrack.models.spam_report import SpamResult
from civictrack.models.user import Principal
from civictrack.services.activity_service import ActivityService
from civictrack.services.engagement_ledger import EngagementLedger
from civictrack.services.geo_query import GeoQueryBuilder, Page
from civictrack.services.geocoding import GeocodingProvider
from civictrack.services.media import ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES, MAX_IMAGES_PER_ISSUE, ImageUpload, MediaStore
from civictrack.services.moderation_policy import ModerationPolicy
from civictrack.services.saga import Saga
from civictrack.services.status_workflow import StatusWorkflowEngine
from civictrack.services.user_service import UserService
from civictrack.utils.firestore_helpers import snapshot_to_dict

logger = logging.getLogger(__name__)

ISSUES_COLLECTION = "issues"


class IssueService:
    """
    Service for the issue lifecycle.

    All collaborators are injected so tests can run against MockFirestore
    and fake media/geocoding backends.
    """

    def __init__(
        self,
        db,
        activity: ActivityService,
        workflow: StatusWorkflowEngine,
        ledger: EngagementLedger,
        moderation: ModerationPolicy,
        users: UserService,
        media: MediaStore,
        geocoder: GeocodingProvider,
        geo_query: GeoQueryBuilder,
    ):
        self.db = db
        self.activity = activity
        self.workflow = workflow
        self.ledger = ledger
        self.moderation = moderation
        self.users = users
        self.media = media
        self.geocoder = geocoder
        self.geo_query = geo_query

    def _issue_ref(self, issue_id: str):
        return self.db.collection(ISSUES_COLLECTION).document(issue_id)

    def _load(self, issue_id: str) -> dict:
        snapshot = self._issue_ref(issue_id).get()
        if not snapshot.exists:
            raise NotFound("Issue", issue_id)
        return snapshot_to_dict(snapshot)

    # Create

    @staticmethod
    def _check_images(images: List[ImageUpload]) -> None:
        if len(images) > MAX_IMAGES_PER_ISSUE:
            raise ValidationError(f"At most {MAX_IMAGES_PER_ISSUE} images per issue", field="images")
        for image in images:
            if image.content_type not in ALLOWED_IMAGE_TYPES:
                raise ValidationError(
                    f"Unsupported image type {image.content_type}. Allowed: {sorted(ALLOWED_IMAGE_TYPES)}",
                    field="images",
                )
            if not image.data:
                raise ValidationError(f"Image {image.filename} is empty", field="images")
            if len(image.data) > MAX_IMAGE_BYTES:
                raise ValidationError(f"Image {image.filename} exceeds {MAX_IMAGE_BYTES} bytes", field="images")

    def create(
        self,
        issue_input: IssueCreate,
        images: Optional[List[ImageUpload]] = None,
        principal: Optional[Principal] = None,
    ) -> Issue:
        """
        Create an issue.

        Flow:
        1. Validate images (type, size, count)
        2. Upload images; each upload registers a compensating delete
        3. Resolve the address (citizen input first, reverse geocoding second)
        4. Store the issue, append "Issue created", bump the reporter's counter

        Any failure undoes the completed steps in reverse order.

        Raises:
            ValidationError: Bad image payload
            ExternalServiceError: Media or store failure (nothing left behind)
        """
        images = images or []
        self._check_images(images)

        reporter_id = None if issue_input.is_anonymous or principal is None else principal.user_id

        try:
            with Saga("create_issue") as saga:
                image_urls = []
                for image in images:
                    url = self.media.upload(image.data, image.filename, image.content_type)
                    saga.add_compensation(f"delete image {url}", lambda url=url: self.media.delete(url))
                    image_urls.append(url)

                address = issue_input.address
                if address is None:
                    address = self.geocoder.lookup_address(issue_input.latitude, issue_input.longitude)

                issue_ref = self.db.collection(ISSUES_COLLECTION).document()
                issue_ref.create({
                    "title": issue_input.title,
                    "description": issue_input.description,
                    "category": issue_input.category,
                    "status": IssueStatus.REPORTED.value,
                    "is_visible": True,
                    "user": reporter_id,
                    "is_anonymous": issue_input.is_anonymous,
                    "location": {
                        "longitude": issue_input.longitude,
                        "latitude": issue_input.latitude,
                    },
                    "address": address,
                    "images": image_urls,
                    "views": 0,
                    "upvotes": 0,
                    "spam_votes": 0,
                    "priority": Priority.MEDIUM.value,
                    "estimated_resolution_time": None,
                    "admin_notes": None,
                    "created_at": firestore.SERVER_TIMESTAMP,
                    "last_status_update": firestore.SERVER_TIMESTAMP,
                    "updated_at": firestore.SERVER_TIMESTAMP,
                })
                issue_id = issue_ref.id
                saga.add_compensation(f"delete issue {issue_id}", issue_ref.delete)

                self.activity.append(issue_id, action="Issue created", updated_by=reporter_id)
                saga.add_compensation(
                    f"delete activity for {issue_id}",
                    lambda: self.activity.delete_for_issue(issue_id),
                )

                if reporter_id:
                    self.users.adjust_issue_count(reporter_id, 1)
        except gexc.GoogleAPIError as e:
            logger.error(f"Issue creation failed in the store: {e}")
            raise ExternalServiceError("store", "Issue could not be saved") from e

        logger.info(
            f"Issue {issue_id} created: category={issue_input.category} "
            f"anonymous={issue_input.is_anonymous} images={len(image_urls)}"
        )
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))

    # Read

    def get_by_id(self, issue_id: str) -> Issue:
        """
        Fetch one issue, counting the view.

        Every successful fetch increments views by exactly one; there is no
        per-viewer deduplication.
        """
        issue_ref = self._issue_ref(issue_id)
        try:
            issue_ref.update({"views": firestore.Increment(1)})
        except gexc.NotFound:
            raise NotFound("Issue", issue_id)
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))

    def read(self, issue_id: str) -> Issue:
        """Fetch one issue without counting a view (admin tooling)."""
        return Issue.from_document(self._load(issue_id))

    @staticmethod
    def _to_page(page: Page) -> IssuePage:
        return IssuePage(
            issues=[Issue.from_document(data, distance=distance) for data, distance in page.items],
            pagination=page.pagination,
        )

    def list_issues(self, filters: IssueListFilter) -> IssuePage:
        """Public listing: visible issues only."""
        plan = self.geo_query.plan_public(filters)
        return self._to_page(self.geo_query.paginate(plan, filters.page, filters.limit))

    def list_nearby(
        self,
        latitude: float,
        longitude: float,
        distance: float = DEFAULT_NEARBY_DISTANCE_METERS,
        category: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> IssuePage:
        """Visible issues within distance meters, nearest first."""
        params = dict(
            category=category,
            status=status,
            geo=GeoQuery(latitude=latitude, longitude=longitude, distance=distance),
            sort=SortField.DISTANCE,
            order=SortOrder.ASC,
            page=page,
        )
        if limit is not None:
            params["limit"] = limit
        return self.list_issues(IssueListFilter(**params))

    def list_admin_issues(self, filters: AdminIssueFilter) -> IssuePage:
        """Admin listing: hidden issues included unless is_visible is given."""
        plan = self.geo_query.plan_admin(filters)
        return self._to_page(self.geo_query.paginate(plan, filters.page, filters.limit))

    def get_activity(self, issue_id: str) -> List[ActivityRecord]:
        self._load(issue_id)
        return self.activity.list_for_issue(issue_id)

    # Update

    def update_status(
        self,
        issue_id: str,
        requested_status: str,
        admin_id: str,
        note: Optional[str] = None,
        priority: Optional[str] = None,
        estimated_resolution_time: Optional[datetime] = None,
        admin_notes: Optional[str] = None,
    ) -> Issue:
        return self.workflow.transition(
            issue_id,
            requested_status,
            acting_principal=admin_id,
            note=note,
            priority=priority,
            estimated_resolution_time=estimated_resolution_time,
            admin_notes=admin_notes,
        )

    def update_admin_notes(self, issue_id: str, admin_notes: str, admin_id: str) -> Issue:
        """Replace the admin notes without touching status."""
        if not admin_notes or not admin_notes.strip():
            raise ValidationError("Admin notes must not be empty", field="adminNotes")
        issue_ref = self._issue_ref(issue_id)
        try:
            issue_ref.update({"admin_notes": admin_notes.strip(), "updated_at": firestore.SERVER_TIMESTAMP})
        except gexc.NotFound:
            raise NotFound("Issue", issue_id)
        self.activity.append(
            issue_id,
            action="Admin notes updated",
            updated_by=admin_id,
            metadata={"admin_notes": admin_notes.strip()},
        )
        logger.info(f"Admin notes updated on issue {issue_id} by {admin_id}")
        return Issue.from_document(snapshot_to_dict(issue_ref.get()))

    # Engagement and moderation

    def toggle_upvote(self, issue_id: str, principal: Principal) -> UpvoteResult:
        return self.ledger.toggle_upvote(issue_id, principal.user_id)

    def report_spam(
        self,
        issue_id: str,
        principal: Principal,
        reason: str,
        description: Optional[str] = None,
    ) -> SpamResult:
        return self.moderation.record_spam_report(issue_id, principal.user_id, reason, description)

    # Delete

    def delete(self, issue_id: str, principal_id: str, is_admin: bool) -> None:
        """
        Delete an issue and everything that hangs off it.

        Only the reporter or an administrator may delete. Cleanup runs in a
        fixed order and stops at the first failing step, which is raised;
        the issue document itself goes last so a partial cleanup can be
        retried.

        Raises:
            NotFound: Issue does not exist
            AuthorizationError: Caller is neither owner nor admin
        """
        data = self._load(issue_id)
        owner_id = data.get("user")
        if not is_admin and (owner_id is None or owner_id != principal_id):
            raise AuthorizationError("Only the reporter or an administrator can delete this issue")

        steps = [
            ("activity records", lambda: self.activity.delete_for_issue(issue_id)),
            ("spam reports", lambda: self.moderation.delete_reports_for_issue(issue_id)),
            ("upvote records", lambda: self.ledger.delete_for_issue(issue_id)),
            ("images", lambda: self._delete_images(data.get("images") or [])),
            ("reporter issue count", lambda: self._release_owner_count(owner_id)),
            ("issue document", lambda: self._issue_ref(issue_id).delete()),
        ]
        for description, step in steps:
            try:
                step()
            except gexc.GoogleAPIError as e:
                logger.error(f"Delete of issue {issue_id} stopped at {description}: {e}")
                raise ExternalServiceError("store", f"Issue delete stopped while removing {description}") from e
            except ExternalServiceError:
                logger.error(f"Delete of issue {issue_id} stopped at {description}")
                raise
            logger.info(f"Delete issue {issue_id}: removed {description}")

        logger.info(f"Issue {issue_id} deleted by {principal_id} (admin={is_admin})")

    def _delete_images(self, urls: List[str]) -> int:
        for url in urls:
            self.media.delete(url)
        return len(urls)

    def _release_owner_count(self, owner_id: Optional[str]) -> None:
        # Anonymous issues were never counted
        if owner_id:
            self.users.adjust_issue_count(owner_id, -1)
