"""
Public issue endpoints.

Citizens create, browse, upvote and flag issues here. Status changes
are admin-only; deletion is open to the reporter and administrators.
"""

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from typing import List, Optional

from civictrack.core.errors import ValidationError
from civictrack.core.rate_limiting import RATE_LIMIT_ISSUE_CREATE, RATE_LIMIT_SPAM_REPORT, limiter
from civictrack.core.settings import DEFAULT_NEARBY_DISTANCE_METERS
from civictrack.models.filters import IssueListFilter, SortField, SortOrder
from civictrack.models.issue import Category, IssueCreate, IssueStatus, StatusUpdateRequest
from civictrack.models.spam_report import SpamReportCreate
from civictrack.models.user import Principal
from civictrack.routes.deps import (
    build_model,
    envelope,
    get_issue_service,
    get_optional_principal,
    get_principal,
    require_admin,
)
from civictrack.services.issue_service import IssueService
from civictrack.services.media import ImageUpload


router = APIRouter(prefix="/issues", tags=["Issues"])


def _geo_params(lat: Optional[float], lng: Optional[float], distance: Optional[float]) -> Optional[dict]:
    if lat is None and lng is None:
        if distance is not None:
            raise ValidationError("distance requires lat and lng", field="distance")
        return None
    if lat is None or lng is None:
        raise ValidationError("lat and lng must be given together", field="lat" if lat is None else "lng")
    return {
        "latitude": lat,
        "longitude": lng,
        "distance": distance if distance is not None else DEFAULT_NEARBY_DISTANCE_METERS,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_ISSUE_CREATE)
async def create_issue(
    request: Request,
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    address: Optional[str] = Form(None),
    is_anonymous: bool = Form(False, alias="isAnonymous"),
    images: Optional[List[UploadFile]] = File(None),
    principal: Principal = Depends(get_principal),
    service: IssueService = Depends(get_issue_service),
):
    """
    Report a new issue (multipart form).

    **Flow:**
    1. Validate fields and images
    2. Upload images to the media store
    3. Fill in the address by reverse geocoding if none was given
    4. Store the issue with status Reported

    If any step fails, uploaded images are removed again.
    """
    issue_input = build_model(
        IssueCreate,
        title=title,
        description=description,
        category=category,
        latitude=latitude,
        longitude=longitude,
        address=address,
        is_anonymous=is_anonymous,
    )
    uploads = [
        ImageUpload(
            data=await image.read(),
            filename=image.filename or "image",
            content_type=image.content_type or "application/octet-stream",
        )
        for image in images or []
    ]
    issue = service.create(issue_input, uploads, principal)
    return envelope("Issue reported successfully", issue)


@router.get("")
async def list_issues(
    category: Optional[Category] = Query(None),
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    is_anonymous: Optional[bool] = Query(None, alias="isAnonymous"),
    search: Optional[str] = Query(None, description="Substring of title, description or address"),
    sort: Optional[SortField] = Query(None),
    order: Optional[SortOrder] = Query(None),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    distance: Optional[float] = Query(None, description="Radius in meters (default 5000)"),
    service: IssueService = Depends(get_issue_service),
):
    """
    Browse visible issues.

    Pass lat/lng (and optionally distance) to restrict to a radius;
    sort=distance then orders by proximity.
    """
    filters = build_model(
        IssueListFilter,
        category=category,
        status=status_filter,
        is_anonymous=is_anonymous,
        search=search,
        geo=_geo_params(lat, lng, distance),
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    return envelope("Issues retrieved successfully", service.list_issues(filters))


@router.get("/nearby")
async def nearby_issues(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    distance: float = Query(DEFAULT_NEARBY_DISTANCE_METERS, gt=0, description="Radius in meters"),
    category: Optional[Category] = Query(None),
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    service: IssueService = Depends(get_issue_service),
):
    """Visible issues within `distance` meters, nearest first."""
    result = service.list_nearby(
        lat,
        lng,
        distance=distance,
        category=category,
        status=status_filter,
        page=page,
        limit=limit,
    )
    return envelope("Nearby issues retrieved successfully", result)


@router.get("/{issue_id}")
async def get_issue(
    issue_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    service: IssueService = Depends(get_issue_service),
):
    """Fetch one issue. Counts as a view."""
    issue = service.get_by_id(issue_id)
    data = issue.model_dump(by_alias=True, mode="json")
    if principal is not None:
        data["hasUpvoted"] = service.ledger.has_upvoted(issue_id, principal.user_id)
    return envelope("Issue retrieved successfully", data)


@router.patch("/{issue_id}/status")
async def update_issue_status(
    issue_id: str,
    request: StatusUpdateRequest,
    admin: Principal = Depends(require_admin),
    service: IssueService = Depends(get_issue_service),
):
    """
    Move an issue along its lifecycle (admin only).

    **Allowed:** Reported → In Progress | Resolved, In Progress → Resolved.
    Anything else returns 409 with the allowed transitions.
    """
    issue = service.update_status(
        issue_id,
        request.status,
        admin.user_id,
        note=request.note,
        priority=request.priority,
        estimated_resolution_time=request.estimated_resolution_time,
        admin_notes=request.admin_notes,
    )
    return envelope(f"Issue status updated to {issue.status}", issue)


@router.post("/{issue_id}/upvote")
async def toggle_upvote(
    issue_id: str,
    principal: Principal = Depends(get_principal),
    service: IssueService = Depends(get_issue_service),
):
    result = service.toggle_upvote(issue_id, principal)
    return envelope("Upvote added" if result.upvoted else "Upvote removed", result)


@router.post("/{issue_id}/spam", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_SPAM_REPORT)
async def report_spam(
    request: Request,
    issue_id: str,
    report: SpamReportCreate,
    principal: Principal = Depends(get_principal),
    service: IssueService = Depends(get_issue_service),
):
    """
    Flag an issue as spam. One report per user per issue.

    The issue is hidden automatically once enough distinct users report it.
    """
    result = service.report_spam(issue_id, principal, report.reason, report.description)
    return envelope("Issue reported as spam", result)


@router.get("/{issue_id}/activity")
async def get_issue_activity(
    issue_id: str,
    service: IssueService = Depends(get_issue_service),
):
    """Audit trail for an issue, newest first."""
    return envelope("Activity retrieved successfully", service.get_activity(issue_id))


@router.delete("/{issue_id}")
async def delete_issue(
    issue_id: str,
    principal: Principal = Depends(get_principal),
    service: IssueService = Depends(get_issue_service),
):
    """Delete an issue with its votes, reports, activity and images (reporter or admin)."""
    service.delete(issue_id, principal.user_id, principal.is_admin)
    return envelope("Issue deleted successfully")
