import os

# Settings are read once at import time
os.environ["USE_MOCK_DB"] = "true"
os.environ["GEOCODING_ENABLED"] = "false"
os.environ["RATE_LIMITING_ENABLED"] = "false"
os.environ["SPAM_THRESHOLD"] = "3"

from typing import Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from civictrack.config.mock_firestore import MockFirestore  # noqa: E402
from civictrack.core.errors import ExternalServiceError  # noqa: E402
from civictrack.core.rate_limiting import limiter  # noqa: E402
from civictrack.models.issue import IssueCreate  # noqa: E402
from civictrack.models.user import Principal, UserRole  # noqa: E402
from civictrack.services.activity_service import ActivityService  # noqa: E402
from civictrack.services.engagement_ledger import EngagementLedger  # noqa: E402
from civictrack.services.geo_query import GeoQueryBuilder  # noqa: E402
from civictrack.services.geocoding import GeocodingProvider, empty_result  # noqa: E402
from civictrack.services.issue_service import IssueService  # noqa: E402
from civictrack.services.media import MediaStore  # noqa: E402
from civictrack.services.moderation_policy import ModerationPolicy  # noqa: E402
from civictrack.services.status_workflow import StatusWorkflowEngine  # noqa: E402
from civictrack.services.user_service import UserService  # noqa: E402

SPAM_THRESHOLD = 3


class FakeMediaStore(MediaStore):
    """Records uploads in memory; can be told to fail the Nth upload."""

    name = "fake"

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.uploads = 0
        self.fail_on_upload: Optional[int] = None
        self.fail_on_delete = False

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        self.uploads += 1
        if self.fail_on_upload is not None and self.uploads == self.fail_on_upload:
            raise ExternalServiceError("media", "Image upload failed")
        url = f"https://media.test/issues/{self.uploads}-{filename}"
        self.objects[url] = data
        return url

    def delete(self, url: str) -> None:
        if self.fail_on_delete:
            raise ExternalServiceError("media", "Image delete failed")
        self.objects.pop(url, None)
        self.deleted.append(url)


class FakeGeocoder(GeocodingProvider):
    name = "fake"

    def __init__(self, address: Optional[str] = "221B Baker Street, London"):
        self.address = address
        self.calls = []

    def reverse_geocode(self, latitude: float, longitude: float):
        self.calls.append((latitude, longitude))
        result = empty_result(self.name)
        result["formatted_address"] = self.address
        return result


@pytest.fixture
def db():
    return MockFirestore()


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def activity(db):
    return ActivityService(db)


@pytest.fixture
def users(db):
    return UserService(db)


@pytest.fixture
def ledger(db):
    return EngagementLedger(db)


@pytest.fixture
def workflow(db, activity):
    return StatusWorkflowEngine(db, activity)


@pytest.fixture
def moderation(db, activity):
    return ModerationPolicy(db, activity, spam_threshold=SPAM_THRESHOLD)


@pytest.fixture
def geo_query(db):
    return GeoQueryBuilder(db, spam_threshold=SPAM_THRESHOLD)


@pytest.fixture
def issue_service(db, activity, workflow, ledger, moderation, users, media, geocoder, geo_query):
    return IssueService(
        db,
        activity=activity,
        workflow=workflow,
        ledger=ledger,
        moderation=moderation,
        users=users,
        media=media,
        geocoder=geocoder,
        geo_query=geo_query,
    )


@pytest.fixture
def add_user(db):
    def _add_user(user_id: str, role: str = "user", is_banned: bool = False) -> Principal:
        db.collection("users").document(user_id).set({
            "username": user_id,
            "role": role,
            "is_banned": is_banned,
            "issues_reported": 0,
        })
        return Principal(user_id=user_id, role=UserRole(role), is_banned=is_banned)

    return _add_user


@pytest.fixture
def citizen(add_user):
    return add_user("citizen-1")


@pytest.fixture
def admin(add_user):
    return add_user("admin-1", role="admin")


@pytest.fixture
def make_issue(issue_service, citizen):
    def _make_issue(principal: Optional[Principal] = None, images=None, **overrides):
        fields = {
            "title": "Pothole on Main Street",
            "description": "Deep pothole near the bus stop",
            "category": "Road",
            "latitude": 40.7128,
            "longitude": -74.0060,
            "address": "Main Street",
        }
        fields.update(overrides)
        return issue_service.create(IssueCreate(**fields), images or [], principal or citizen)

    return _make_issue


@pytest.fixture
def client(db, media, geocoder):
    from civictrack.main import app
    from civictrack.routes import deps

    limiter.enabled = False
    app.dependency_overrides[deps.get_database] = lambda: db
    app.dependency_overrides[deps.get_media] = lambda: media
    app.dependency_overrides[deps.get_geocoder] = lambda: geocoder
    yield TestClient(app)
    app.dependency_overrides.clear()
