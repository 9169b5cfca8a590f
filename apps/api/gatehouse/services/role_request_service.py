"""Role change requests - self-service role asks and their review workflow.

States: pending -> approved | rejected | cancelled (all terminal).

Decisions use optimistic concurrency: the reviewer supplies the version
they read, and the state change is a guarded UPDATE matching both that
version and the pending status. Of two concurrent reviewers exactly one
update matches a row; the other gets ConflictError.
"""

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from gatehouse.core.config import settings
from gatehouse.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    ModuleDisabledError,
    NotFoundError,
    ValidationError,
)
from gatehouse.core.modules import gating_module
from gatehouse.core.structured_logging import build_log_context
from gatehouse.db.enums import AuditAction, Role, RoleDecision, RoleRequestStatus
from gatehouse.db.models import Account, RoleChangeRequest
from gatehouse.services import (
    audit_service,
    authorization_service,
    notification_service,
    role_service,
)
from gatehouse.utils.pagination import PaginationParams, paginate_query
from gatehouse.utils.timestamps import now_utc

logger = logging.getLogger(__name__)

MAX_JUSTIFICATION_LENGTH = 2000


def _parse_role(value: str) -> Role:
    if not Role.has_value(value):
        raise ValidationError(f"Unknown role: {value}", role=value)
    return Role(value)


def get_request(db: Session, request_id: UUID) -> RoleChangeRequest:
    """
    Raises:
        NotFoundError: Unknown request
    """
    request = db.query(RoleChangeRequest).filter(RoleChangeRequest.id == request_id).first()
    if not request:
        raise NotFoundError("Role change request not found", request_id=str(request_id))
    return request


def list_requests(
    db: Session,
    pagination: PaginationParams,
    status: RoleRequestStatus | None = None,
    requester_account_id: UUID | None = None,
    community_id: UUID | None = None,
) -> tuple[list[RoleChangeRequest], int]:
    """
    Requests newest first.

    Returns:
        (requests, total_count)
    """
    query = db.query(RoleChangeRequest)
    if status:
        query = query.filter(RoleChangeRequest.status == status.value)
    if requester_account_id:
        query = query.filter(RoleChangeRequest.requester_account_id == requester_account_id)
    if community_id:
        query = query.filter(RoleChangeRequest.community_id == community_id)

    query = query.order_by(RoleChangeRequest.created_at.desc(), RoleChangeRequest.id.desc())
    return paginate_query(query, pagination)


def submit_request(
    db: Session,
    requester: Account,
    requested_role: str,
    justification: str,
) -> RoleChangeRequest:
    """
    Create a pending request for an additional role.

    Raises:
        ValidationError: Unknown or non-requestable role, empty justification
        AuthorizationError: Requester's access has expired
        ConflictError: Role already held, or another request is pending
        ModuleDisabledError: Role is gated by a module disabled in the community
    """
    role = _parse_role(requested_role)
    if role == Role.GUEST:
        raise ValidationError("Guest access is granted through household links", role=role.value)

    justification = (justification or "").strip()
    if not justification:
        raise ValidationError("Justification is required")
    if len(justification) > MAX_JUSTIFICATION_LENGTH:
        raise ValidationError(
            f"Justification must be at most {MAX_JUSTIFICATION_LENGTH} characters"
        )

    snapshot = authorization_service.get_access_snapshot(db, requester.id)
    if not authorization_service.authorize(snapshot, 1):
        raise AuthorizationError("Account access has expired")
    if authorization_service.has_role(snapshot, role):
        raise ConflictError(f"existing role: {role.value}", existing_role=role.value)

    pending = (
        db.query(RoleChangeRequest.id)
        .filter(
            RoleChangeRequest.requester_account_id == requester.id,
            RoleChangeRequest.status == RoleRequestStatus.PENDING.value,
        )
        .first()
    )
    if pending:
        raise ConflictError(
            "A role change request is already pending", request_id=str(pending[0])
        )

    if not authorization_service.can_assign_role(db, role, snapshot.community_id):
        raise ModuleDisabledError(
            f"Role {role.value} is not available in this community",
            role=role.value,
            module=gating_module(role),
        )

    request = RoleChangeRequest(
        requester_account_id=requester.id,
        requested_role=role.value,
        justification=justification,
        community_id=snapshot.community_id,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        "Role request submitted %s",
        build_log_context(actor_id=requester.id, target_id=request.id, action="role_request_submit"),
    )
    return request


def _deny_decision(
    db: Session,
    request: RoleChangeRequest,
    reviewer_id: UUID,
    decision: RoleDecision,
    reason: str,
) -> None:
    audit_service.record_denied(
        db,
        AuditAction.ROLE_DECISION_DENIED,
        actor_account_id=reviewer_id,
        reason=reason,
        target_account_id=request.requester_account_id,
        target_type="role_change_request",
        target_id=request.id,
        community_id=request.community_id,
        attempted={"decision": decision.value, "role": request.requested_role},
    )


def decide_request(
    db: Session,
    request_id: UUID,
    reviewer: Account,
    decision: RoleDecision,
    version: int,
    reason: str | None = None,
) -> RoleChangeRequest:
    """
    Approve or reject a pending request.

    Approval activates the role, writes one role_grant audit entry and
    commits them together; rejection writes one role_request_reject entry.
    The requester is notified after commit.

    Raises:
        NotFoundError: Unknown request
        InvalidStateError: Request is no longer pending
        AuthorizationError: Reviewer level too low, another community, own
            request, or role above what the reviewer may grant (audited)
        ModuleDisabledError: Role's module is disabled (audited)
        ConflictError: Another decision won the race ("request already decided")
    """
    request = get_request(db, request_id)
    if request.status != RoleRequestStatus.PENDING.value:
        raise InvalidStateError(
            f"Request is not pending (status: {request.status})", status=request.status
        )

    reviewer_snapshot = authorization_service.get_access_snapshot(db, reviewer.id)
    role = _parse_role(request.requested_role)

    if not authorization_service.authorize(reviewer_snapshot, settings.ROLE_APPROVAL_THRESHOLD):
        _deny_decision(db, request, reviewer.id, decision, "insufficient_level")
        raise AuthorizationError("Insufficient level to decide role requests")
    if (
        reviewer_snapshot.level <= settings.ROLE_APPROVAL_THRESHOLD
        and reviewer_snapshot.community_id != request.community_id
    ):
        _deny_decision(db, request, reviewer.id, decision, "outside_community")
        raise AuthorizationError("Request belongs to another community")
    if reviewer.id == request.requester_account_id:
        _deny_decision(db, request, reviewer.id, decision, "own_request")
        raise AuthorizationError("Reviewers cannot decide their own requests")
    if decision == RoleDecision.APPROVED:
        if not authorization_service.can_grant_role(reviewer_snapshot.level, role):
            _deny_decision(db, request, reviewer.id, decision, "role_above_reviewer")
            raise AuthorizationError(f"Not allowed to grant {role.value}")
        if not authorization_service.can_assign_role(db, role, request.community_id):
            _deny_decision(db, request, reviewer.id, decision, "module_disabled")
            raise ModuleDisabledError(
                f"Role {role.value} is not available in this community",
                role=role.value,
                module=gating_module(role),
            )

    if version != request.version:
        raise ConflictError(
            "request already decided", expected_version=request.version, supplied_version=version
        )

    requester_id = request.requester_account_id
    before = authorization_service.get_access_snapshot(db, requester_id).as_state()

    now = now_utc()
    new_status = (
        RoleRequestStatus.APPROVED if decision == RoleDecision.APPROVED else RoleRequestStatus.REJECTED
    )
    result = db.execute(
        update(RoleChangeRequest)
        .where(
            RoleChangeRequest.id == request.id,
            RoleChangeRequest.version == version,
            RoleChangeRequest.status == RoleRequestStatus.PENDING.value,
        )
        .values(
            status=new_status.value,
            reviewer_account_id=reviewer.id,
            decision_reason=reason,
            decision_at=now,
            updated_at=now,
            version=RoleChangeRequest.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("Lost decision race on role request %s (version %s)", request_id, version)
        raise ConflictError("request already decided", supplied_version=version)

    if new_status == RoleRequestStatus.APPROVED:
        role_service.activate_role(db, requester_id, role, assigned_by=reviewer.id)
        if role != Role.GUEST:
            role_service.end_guest_access(db, requester_id, reviewer.id)
        after = authorization_service.get_access_snapshot(db, requester_id).as_state()
        action = AuditAction.ROLE_GRANT
    else:
        after = before
        action = AuditAction.ROLE_REQUEST_REJECT

    audit_service.append(
        db,
        action,
        actor_account_id=reviewer.id,
        target_account_id=requester_id,
        target_type="role_change_request",
        target_id=request.id,
        community_id=request.community_id,
        before=before,
        after={**after, "role": role.value, "decision": decision.value},
        reason=reason,
    )
    db.commit()
    db.refresh(request)

    logger.info(
        "Role request %s %s",
        new_status.value,
        build_log_context(actor_id=reviewer.id, target_id=request.id, action=action.value),
    )
    notification_service.notify_role_request_decided(db, request)
    return request


def cancel_request(db: Session, request_id: UUID, requester: Account) -> RoleChangeRequest:
    """
    Withdraw one's own pending request.

    Raises:
        NotFoundError: Unknown request
        AuthorizationError: Caller is not the requester (audited)
        InvalidStateError: Request is no longer pending
        ConflictError: A reviewer decided it concurrently
    """
    request = get_request(db, request_id)
    if request.requester_account_id != requester.id:
        audit_service.record_denied(
            db,
            AuditAction.ROLE_REQUEST_CANCEL_DENIED,
            actor_account_id=requester.id,
            reason="not_requester",
            target_account_id=request.requester_account_id,
            target_type="role_change_request",
            target_id=request.id,
            community_id=request.community_id,
            attempted={"cancel": True},
        )
        raise AuthorizationError("Only the requester can cancel a request")
    if request.status != RoleRequestStatus.PENDING.value:
        raise InvalidStateError(
            f"Request is not pending (status: {request.status})", status=request.status
        )

    now = now_utc()
    result = db.execute(
        update(RoleChangeRequest)
        .where(
            RoleChangeRequest.id == request.id,
            RoleChangeRequest.status == RoleRequestStatus.PENDING.value,
        )
        .values(
            status=RoleRequestStatus.CANCELLED.value,
            updated_at=now,
            version=RoleChangeRequest.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("request already decided")

    db.commit()
    db.refresh(request)
    logger.info("Role request %s cancelled by requester", request.id)
    return request
