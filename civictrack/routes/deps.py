"""
FastAPI dependencies: service factories and the calling principal.

Routes never construct services themselves. Everything is built from
three roots (document store, media store, geocoder), which tests
override with a MockFirestore and fakes.
"""

from fastapi import Depends, Header
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Dict, Optional, Type, TypeVar
import logging

from civictrack.config.firebase import get_db
from civictrack.core.errors import AuthorizationError, ExternalServiceError, Unauthenticated, ValidationError
from civictrack.core.settings import settings
from civictrack.models.base import ApiResponse
from civictrack.models.user import Principal
from civictrack.services.activity_service import ActivityService
from civictrack.services.engagement_ledger import EngagementLedger
from civictrack.services.geo_query import GeoQueryBuilder
from civictrack.services.geocoding import GeocodingProvider, get_geocoding_provider
from civictrack.services.issue_service import IssueService
from civictrack.services.media import MediaStore, get_media_store
from civictrack.services.moderation_policy import ModerationPolicy
from civictrack.services.status_workflow import StatusWorkflowEngine
from civictrack.services.user_service import UserService

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Roots

def get_database():
    try:
        return get_db()
    except RuntimeError as e:
        logger.error(f"Document store unavailable: {e}")
        raise ExternalServiceError("database", "Document store unavailable")


def get_media() -> MediaStore:
    return get_media_store()


def get_geocoder() -> GeocodingProvider:
    return get_geocoding_provider()


# Services

def get_activity_service(db=Depends(get_database)) -> ActivityService:
    return ActivityService(db)


def get_user_service(db=Depends(get_database)) -> UserService:
    return UserService(db)


def get_moderation_policy(
    db=Depends(get_database),
    activity: ActivityService = Depends(get_activity_service),
) -> ModerationPolicy:
    return ModerationPolicy(db, activity, spam_threshold=settings.SPAM_THRESHOLD)


def get_issue_service(
    db=Depends(get_database),
    activity: ActivityService = Depends(get_activity_service),
    users: UserService = Depends(get_user_service),
    moderation: ModerationPolicy = Depends(get_moderation_policy),
    media: MediaStore = Depends(get_media),
    geocoder: GeocodingProvider = Depends(get_geocoder),
) -> IssueService:
    return IssueService(
        db,
        activity=activity,
        workflow=StatusWorkflowEngine(db, activity),
        ledger=EngagementLedger(db),
        moderation=moderation,
        users=users,
        media=media,
        geocoder=geocoder,
        geo_query=GeoQueryBuilder(db, spam_threshold=settings.SPAM_THRESHOLD),
    )


# Principal

def get_optional_principal(
    caller_id: Optional[str] = Header(None, alias="X-User-ID", description="Caller id from the identity provider"),
    users: UserService = Depends(get_user_service),
) -> Optional[Principal]:
    """
    Resolve the caller, if any.

    Banned callers are stopped here, before any engine operation runs.
    """
    if not caller_id:
        return None
    principal = users.get_principal(caller_id)
    if principal.is_banned:
        logger.info(f"Rejected request from banned user {caller_id}")
        raise AuthorizationError("Your account has been banned")
    return principal


def get_principal(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
    if principal is None:
        raise Unauthenticated("X-User-ID header is required")
    return principal


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise AuthorizationError("Administrator role required")
    return principal


# Request models

def build_model(model: Type[T], **params) -> T:
    """
    Build a request model or typed filter, dropping parameters not given.

    Pydantic errors become the engine's ValidationError.
    """
    try:
        return model(**{key: value for key, value in params.items() if value is not None})
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(first.get("msg", "Invalid input"), field=field)


def envelope(message: str, data: Any = None) -> Dict[str, Any]:
    """Success envelope shared by every route: {success, message, data}."""
    return ApiResponse(message=message, data=jsonable_encoder(data)).model_dump()
