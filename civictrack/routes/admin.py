"""
Admin endpoints - moderation control layer.

SCOPE OF ADMIN:
✅ Audit every issue, hidden ones included
✅ Hide, show and restore issues
✅ Review community spam reports
✅ Keep admin notes on issues
✅ List, ban and unban users

❌ NOT edit report content
❌ NOT change status outside the lifecycle rules
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query
from typing import Optional

from civictrack.models.filters import AdminIssueFilter, SortField, SortOrder, SpamBucket
from civictrack.models.issue import AdminNotesRequest, Category, HideRequest, IssueStatus, Priority
from civictrack.models.spam_report import SpamReviewRequest
from civictrack.models.user import BanRequest, Principal
from civictrack.routes.deps import (
    build_model,
    envelope,
    get_issue_service,
    get_moderation_policy,
    get_user_service,
    require_admin,
)
from civictrack.services.issue_service import IssueService
from civictrack.services.moderation_policy import ModerationPolicy
from civictrack.services.status_workflow import StatusWorkflowEngine
from civictrack.services.user_service import UserService


router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/issues")
async def list_admin_issues(
    category: Optional[Category] = Query(None),
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
    is_visible: Optional[bool] = Query(None, alias="isVisible"),
    spam_votes: Optional[SpamBucket] = Query(None, alias="spamVotes", description="none, medium or high"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    search: Optional[str] = Query(None),
    sort: Optional[SortField] = Query(None),
    order: Optional[SortOrder] = Query(None),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    service: IssueService = Depends(get_issue_service),
):
    """
    All issues for moderation, hidden ones included.

    Visibility is only filtered when isVisible is given.
    """
    filters = build_model(
        AdminIssueFilter,
        category=category,
        status=status_filter,
        priority=priority,
        is_visible=is_visible,
        spam_votes=spam_votes,
        date_from=date_from,
        date_to=date_to,
        search=search,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    return envelope("Issues retrieved successfully", service.list_admin_issues(filters))


@router.get("/issues/{issue_id}/allowed-transitions")
async def allowed_transitions(
    issue_id: str,
    service: IssueService = Depends(get_issue_service),
):
    """Statuses the issue can move to next (empty once Resolved)."""
    issue = service.read(issue_id)
    return envelope("Allowed transitions retrieved", {
        "issueId": issue_id,
        "currentStatus": issue.status,
        "allowedTransitions": StatusWorkflowEngine.get_allowed_transitions(issue.status),
    })


@router.patch("/issues/{issue_id}/hide")
async def hide_issue(
    issue_id: str,
    request: Optional[HideRequest] = None,
    admin: Principal = Depends(require_admin),
    moderation: ModerationPolicy = Depends(get_moderation_policy),
):
    reason = request.reason if request else None
    return envelope("Issue hidden successfully", moderation.hide(issue_id, reason, admin.user_id))


@router.patch("/issues/{issue_id}/show")
async def show_issue(
    issue_id: str,
    admin: Principal = Depends(require_admin),
    moderation: ModerationPolicy = Depends(get_moderation_policy),
):
    """Make an issue visible again; its spam reports stay on file."""
    return envelope("Issue is now visible", moderation.show(issue_id, admin.user_id))


@router.patch("/issues/{issue_id}/restore")
async def restore_issue(
    issue_id: str,
    admin: Principal = Depends(require_admin),
    moderation: ModerationPolicy = Depends(get_moderation_policy),
):
    """
    Restore an issue hidden by spam reports.

    Clears every spam report, resets the spam count and makes the issue
    visible. Status is unchanged.
    """
    return envelope("Issue restored successfully", moderation.restore(issue_id, admin.user_id))


@router.patch("/issues/{issue_id}/admin-notes")
async def update_admin_notes(
    issue_id: str,
    request: AdminNotesRequest,
    admin: Principal = Depends(require_admin),
    service: IssueService = Depends(get_issue_service),
):
    issue = service.update_admin_notes(issue_id, request.admin_notes, admin.user_id)
    return envelope("Admin notes updated successfully", issue)


@router.get("/spam-reports")
async def list_spam_reports(
    status_filter: Optional[str] = Query(None, alias="status", description="Pending, Reviewed, Action Taken or Dismissed"),
    page: int = Query(1),
    limit: int = Query(20),
    moderation: ModerationPolicy = Depends(get_moderation_policy),
):
    result = moderation.list_spam_reports(status=status_filter, page=page, limit=limit)
    return envelope("Spam reports retrieved successfully", result)


@router.get("/spam-summary")
async def spam_summary(moderation: ModerationPolicy = Depends(get_moderation_policy)):
    """Report counts by reason and review status, plus the number of hidden issues."""
    return envelope("Spam summary retrieved successfully", moderation.spam_summary())


@router.patch("/spam-reports/{report_id}/review")
async def review_spam_report(
    report_id: str,
    request: SpamReviewRequest,
    admin: Principal = Depends(require_admin),
    moderation: ModerationPolicy = Depends(get_moderation_policy),
):
    """Record a review decision. Does not change the issue's visibility."""
    report = moderation.review_spam_report(report_id, request.status, admin.user_id, request.action_taken)
    return envelope("Spam report reviewed successfully", report)


@router.patch("/users/{user_id}/ban")
async def ban_user(
    user_id: str,
    request: BanRequest,
    admin: Principal = Depends(require_admin),
    users: UserService = Depends(get_user_service),
):
    return envelope("User banned successfully", users.ban(user_id, request.reason, admin.user_id))


@router.patch("/users/{user_id}/unban")
async def unban_user(
    user_id: str,
    users: UserService = Depends(get_user_service),
):
    return envelope("User unbanned successfully", users.unban(user_id))


@router.get("/users")
async def list_users(
    search: Optional[str] = Query(None, description="Matches username or email"),
    is_banned: Optional[bool] = Query(None, alias="isBanned"),
    page: int = Query(1),
    limit: int = Query(20),
    users: UserService = Depends(get_user_service),
):
    """Users, newest first."""
    result = users.list_users(search=search, is_banned=is_banned, page=page, limit=limit)
    return envelope("Users retrieved successfully", result)
