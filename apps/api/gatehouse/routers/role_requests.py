"""Router for the role change request workflow."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from gatehouse.core.config import settings
from gatehouse.core.deps import get_current_account, get_db, require_csrf_header
from gatehouse.core.errors import AuthorizationError
from gatehouse.core.rate_limit import limiter, role_request_limit
from gatehouse.db.enums import AuditAction, RoleRequestStatus
from gatehouse.db.models import Account
from gatehouse.schemas.role_request import (
    RoleRequestCreate,
    RoleRequestDecision,
    RoleRequestListResponse,
    RoleRequestRead,
)
from gatehouse.services import audit_service, authorization_service, role_request_service
from gatehouse.utils.pagination import PaginationParams, get_pagination

router = APIRouter(prefix="/role-requests", tags=["Role Requests"])


@router.post("", response_model=RoleRequestRead, status_code=201)
@limiter.limit(role_request_limit)
def submit_role_request(
    request: Request,
    body: RoleRequestCreate,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    """Ask for an additional role."""
    return role_request_service.submit_request(
        db, account, body.requested_role, body.justification
    )


@router.get("", response_model=RoleRequestListResponse)
def list_role_requests(
    status: RoleRequestStatus | None = Query(None),
    mine: bool = Query(False, description="Only the caller's own requests"),
    pagination: PaginationParams = Depends(get_pagination),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """
    Reviewers see the queue (their community, or all for higher levels);
    everyone else sees only their own history.
    """
    snapshot = authorization_service.get_access_snapshot(db, account.id)
    is_reviewer = authorization_service.authorize(snapshot, settings.ROLE_APPROVAL_THRESHOLD)

    requester_id = account.id if mine or not is_reviewer else None
    community_id = None
    if requester_id is None and snapshot.level <= settings.ROLE_APPROVAL_THRESHOLD:
        community_id = snapshot.community_id

    items, total = role_request_service.list_requests(
        db,
        pagination,
        status=status,
        requester_account_id=requester_id,
        community_id=community_id,
    )
    return RoleRequestListResponse(
        items=items,
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages(total),
    )


@router.get("/{request_id}", response_model=RoleRequestRead)
def get_role_request(
    request_id: UUID,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    request = role_request_service.get_request(db, request_id)
    if request.requester_account_id != account.id:
        snapshot = authorization_service.get_access_snapshot(db, account.id)
        if not authorization_service.authorize(snapshot, settings.ROLE_APPROVAL_THRESHOLD):
            audit_service.record_denied(
                db,
                AuditAction.ACCESS_DENIED,
                actor_account_id=account.id,
                reason="insufficient_level",
                target_account_id=request.requester_account_id,
                target_type="role_change_request",
                target_id=request_id,
                community_id=snapshot.community_id,
                attempted={"read": "role_change_request"},
            )
            raise AuthorizationError("Not allowed to view this request")
    return request


@router.post("/{request_id}/decision", response_model=RoleRequestRead)
def decide_role_request(
    request_id: UUID,
    body: RoleRequestDecision,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    """
    Approve or reject a pending request.

    Send the version you read; 409 "request already decided" means another
    reviewer got there first.
    """
    return role_request_service.decide_request(
        db, request_id, account, body.decision, body.version, body.reason
    )


@router.post("/{request_id}/cancel", response_model=RoleRequestRead)
def cancel_role_request(
    request_id: UUID,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    return role_request_service.cancel_request(db, request_id, account)
