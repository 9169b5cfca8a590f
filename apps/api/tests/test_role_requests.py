"""Tests for the role change request workflow."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import update

from gatehouse.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    ModuleDisabledError,
    ValidationError,
)
from gatehouse.db.enums import AuditAction, Role, RoleDecision, RoleRequestStatus
from gatehouse.db.models import Account, AuditLogEntry, Notification, RoleAssignment, RoleChangeRequest
from gatehouse.db.session import SessionLocal
from gatehouse.services import authorization_service, role_request_service
from gatehouse.utils.pagination import PaginationParams
from gatehouse.utils.timestamps import ensure_utc, now_utc


def _submit(db, account, role="community_leader"):
    return role_request_service.submit_request(db, account, role, "I organise the block meetings")


def _audit(db, action=None):
    query = db.query(AuditLogEntry)
    if action:
        query = query.filter(AuditLogEntry.action == action.value)
    return query.all()


# =============================================================================
# Submission
# =============================================================================

def test_submit_creates_pending_request(db, resident, community_id):
    request = _submit(db, resident)

    assert request.status == RoleRequestStatus.PENDING.value
    assert request.version == 1
    assert request.community_id == community_id
    assert request.requested_role == "community_leader"


def test_submit_writes_no_audit_entry(db, resident):
    _submit(db, resident)
    assert _audit(db) == []


@pytest.mark.parametrize("role", ["overlord", "guest"])
def test_submit_rejects_unknown_or_guest_role(db, resident, role):
    with pytest.raises(ValidationError):
        _submit(db, resident, role)


def test_submit_requires_justification(db, resident):
    with pytest.raises(ValidationError):
        role_request_service.submit_request(db, resident, "community_leader", "   ")


def test_submit_rejects_role_already_held(db, make_account):
    leader = make_account(Role.COMMUNITY_LEADER)
    with pytest.raises(ConflictError):
        _submit(db, leader)


def test_submit_rejects_second_pending_request(db, resident):
    first = _submit(db, resident)
    with pytest.raises(ConflictError) as exc_info:
        _submit(db, resident, "service_provider")
    assert exc_info.value.extra["request_id"] == str(first.id)


def test_submit_for_disabled_module_role_fails(db, resident):
    with pytest.raises(ModuleDisabledError) as exc_info:
        _submit(db, resident, "security_officer")
    assert exc_info.value.extra["module"] == "security"


def test_expired_account_cannot_submit(db, make_account):
    guest = make_account(Role.GUEST, expires_at=now_utc() - timedelta(days=1))
    with pytest.raises(AuthorizationError):
        _submit(db, guest)


# =============================================================================
# Decisions
# =============================================================================

def test_approval_grants_role_and_writes_one_audit_entry(db, resident, admin):
    """Resident submits community_leader, level-8 reviewer approves."""
    request = _submit(db, resident)

    decided = role_request_service.decide_request(
        db, request.id, admin, RoleDecision.APPROVED, version=request.version
    )

    assert decided.status == RoleRequestStatus.APPROVED.value
    assert decided.version == 2
    assert decided.reviewer_account_id == admin.id
    assert authorization_service.get_effective_level(db, resident.id) == 3

    entries = _audit(db)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.action == "role_grant"
    assert entry.actor_account_id == str(admin.id)
    assert entry.target_account_id == str(resident.id)
    assert entry.before_state["level"] == 1
    assert entry.after_state["level"] == 3


def test_approval_notifies_requester(db, resident, admin):
    request = _submit(db, resident)
    role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=1)

    notification = db.query(Notification).filter(Notification.account_id == resident.id).one()
    assert notification.type == "role_request_approved"
    assert notification.entity_id == str(request.id)


def test_notification_failure_does_not_undo_approval(db, resident, admin, monkeypatch):
    from gatehouse.services import notification_service

    def boom(*args, **kwargs):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr(notification_service, "create_notification", boom)
    request = _submit(db, resident)

    decided = role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=1)

    assert decided.status == RoleRequestStatus.APPROVED.value
    assert authorization_service.get_effective_level(db, resident.id) == 3


def test_second_approval_fails_with_invalid_state(db, resident, admin, make_account):
    other_admin = make_account(Role.COMMUNITY_ADMIN)
    request = _submit(db, resident)
    role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=1)

    with pytest.raises(InvalidStateError):
        role_request_service.decide_request(db, request.id, other_admin, RoleDecision.APPROVED, version=2)

    assignments = db.query(RoleAssignment).filter(
        RoleAssignment.account_id == resident.id,
        RoleAssignment.role == Role.COMMUNITY_LEADER.value,
    ).all()
    assert len(assignments) == 1
    assert assignments[0].assigned_by == admin.id
    assert len(_audit(db, AuditAction.ROLE_GRANT)) == 1


def test_rejection_records_reason_without_role_change(db, resident, admin):
    request = _submit(db, resident)

    decided = role_request_service.decide_request(
        db, request.id, admin, RoleDecision.REJECTED, version=1, reason="Leader seat already filled"
    )

    assert decided.status == RoleRequestStatus.REJECTED.value
    assert authorization_service.get_effective_level(db, resident.id) == 1
    entry = _audit(db, AuditAction.ROLE_REQUEST_REJECT)[0]
    assert entry.reason == "Leader seat already filled"


def test_stale_version_is_a_conflict(db, resident, admin):
    request = _submit(db, resident)
    with pytest.raises(ConflictError, match="request already decided"):
        role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=7)
    assert db.get(RoleChangeRequest, request.id).status == RoleRequestStatus.PENDING.value
    assert _audit(db) == []


def test_concurrent_decisions_exactly_one_succeeds(db, resident, admin, make_account):
    """Two reviewers decide version 3 at the same time; only one wins."""
    reviewer_y = make_account(Role.COMMUNITY_ADMIN)
    request = _submit(db, resident)
    db.execute(update(RoleChangeRequest).where(RoleChangeRequest.id == request.id).values(version=3))
    db.commit()

    # Reviewer X has read the request (version 3, pending) in its own session
    stale = role_request_service.get_request(db, request.id)
    assert stale.version == 3

    # Reviewer Y decides first from another session
    other = SessionLocal()
    try:
        role_request_service.decide_request(
            other, request.id, other.get(Account, reviewer_y.id), RoleDecision.APPROVED, version=3
        )
    finally:
        other.close()

    with pytest.raises(ConflictError, match="request already decided"):
        role_request_service.decide_request(db, request.id, admin, RoleDecision.REJECTED, version=3)

    db.expire_all()
    final = db.get(RoleChangeRequest, request.id)
    assert final.status == RoleRequestStatus.APPROVED.value
    assert final.reviewer_account_id == reviewer_y.id
    assert final.version == 4
    assert len(_audit(db, AuditAction.ROLE_GRANT)) == 1
    assert _audit(db, AuditAction.ROLE_REQUEST_REJECT) == []


def test_reviewer_below_threshold_is_denied_and_audited(db, resident, make_account):
    manager = make_account(Role.FACILITY_MANAGER)
    request = _submit(db, resident)

    with pytest.raises(AuthorizationError):
        role_request_service.decide_request(db, request.id, manager, RoleDecision.APPROVED, version=1)

    denied = _audit(db, AuditAction.ROLE_DECISION_DENIED)
    assert len(denied) == 1
    assert denied[0].reason == "insufficient_level"
    assert db.get(RoleChangeRequest, request.id).status == RoleRequestStatus.PENDING.value


def test_threshold_comes_from_settings(db, resident, make_account, monkeypatch):
    from gatehouse.core.config import settings

    monkeypatch.setattr(settings, "ROLE_APPROVAL_THRESHOLD", 7)
    manager = make_account(Role.FACILITY_MANAGER)
    request = _submit(db, resident)

    decided = role_request_service.decide_request(db, request.id, manager, RoleDecision.APPROVED, version=1)
    assert decided.status == RoleRequestStatus.APPROVED.value


def test_reviewer_cannot_grant_role_at_own_level(db, make_account, admin):
    leader = make_account(Role.COMMUNITY_LEADER)
    request = _submit(db, leader, "community_admin")

    with pytest.raises(AuthorizationError):
        role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=1)
    assert _audit(db, AuditAction.ROLE_DECISION_DENIED)[0].reason == "role_above_reviewer"


def test_reviewer_may_reject_role_above_own_level(db, make_account, admin):
    leader = make_account(Role.COMMUNITY_LEADER)
    request = _submit(db, leader, "state_admin")

    decided = role_request_service.decide_request(db, request.id, admin, RoleDecision.REJECTED, version=1)
    assert decided.status == RoleRequestStatus.REJECTED.value


def test_reviewer_cannot_decide_own_request(db, make_account):
    district = make_account(Role.DISTRICT_COORDINATOR)
    request = _submit(db, district)

    with pytest.raises(AuthorizationError):
        role_request_service.decide_request(db, request.id, district, RoleDecision.APPROVED, version=1)
    assert _audit(db, AuditAction.ROLE_DECISION_DENIED)[0].reason == "own_request"


def test_community_admin_limited_to_own_community(db, resident, make_account):
    request = _submit(db, resident)
    outsider = make_account(Role.COMMUNITY_ADMIN, community=uuid.uuid4())

    with pytest.raises(AuthorizationError):
        role_request_service.decide_request(db, request.id, outsider, RoleDecision.APPROVED, version=1)
    assert _audit(db, AuditAction.ROLE_DECISION_DENIED)[0].reason == "outside_community"


def test_district_coordinator_decides_across_communities(db, resident, make_account):
    request = _submit(db, resident)
    coordinator = make_account(Role.DISTRICT_COORDINATOR, community=uuid.uuid4())

    decided = role_request_service.decide_request(
        db, request.id, coordinator, RoleDecision.APPROVED, version=1
    )
    assert decided.status == RoleRequestStatus.APPROVED.value


def test_approval_fails_when_module_disabled_after_submission(db, resident, admin, enable_modules):
    from gatehouse.services import module_service

    enable_modules("security")
    request = _submit(db, resident, "security_officer")
    module_service.set_module_enabled(db, admin, admin.community_id, "security", False)

    with pytest.raises(ModuleDisabledError):
        role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=1)

    assert db.get(RoleChangeRequest, request.id).status == RoleRequestStatus.PENDING.value
    assert authorization_service.get_effective_level(db, resident.id) == 1


def test_permanent_role_ends_guest_access(db, make_account, admin):
    guest = make_account(Role.GUEST, expires_at=now_utc() + timedelta(days=3))
    request = _submit(db, guest)

    role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=1)

    db.refresh(guest)
    snapshot = authorization_service.get_access_snapshot(db, guest.id)
    assert snapshot.roles == frozenset({Role.COMMUNITY_LEADER})
    assert guest.access_expires_at is None


# =============================================================================
# Cancellation and listing
# =============================================================================

def test_requester_can_cancel_pending_request(db, resident):
    request = _submit(db, resident)
    cancelled = role_request_service.cancel_request(db, request.id, resident)
    assert cancelled.status == RoleRequestStatus.CANCELLED.value

    # A new request is allowed afterwards
    assert _submit(db, resident).status == RoleRequestStatus.PENDING.value


def test_only_requester_can_cancel(db, resident, admin):
    request = _submit(db, resident)
    with pytest.raises(AuthorizationError):
        role_request_service.cancel_request(db, request.id, admin)

    denied = _audit(db, AuditAction.ROLE_REQUEST_CANCEL_DENIED)
    assert len(denied) == 1
    assert denied[0].actor_account_id == str(admin.id)
    assert denied[0].target_id == str(request.id)
    assert db.get(RoleChangeRequest, request.id).status == RoleRequestStatus.PENDING.value


def test_cancel_after_decision_is_invalid_state(db, resident, admin):
    request = _submit(db, resident)
    role_request_service.decide_request(db, request.id, admin, RoleDecision.REJECTED, version=1)
    with pytest.raises(InvalidStateError):
        role_request_service.cancel_request(db, request.id, resident)


def test_decide_cancelled_request_is_invalid_state(db, resident, admin):
    request = _submit(db, resident)
    role_request_service.cancel_request(db, request.id, resident)
    with pytest.raises(InvalidStateError):
        role_request_service.decide_request(db, request.id, admin, RoleDecision.APPROVED, version=2)


def test_list_requests_newest_first_and_filtered(db, make_account):
    first = _submit(db, make_account(Role.RESIDENT))
    second = _submit(db, make_account(Role.RESIDENT))

    items, total = role_request_service.list_requests(
        db, PaginationParams(page=1, per_page=10), status=RoleRequestStatus.PENDING
    )
    assert total == 2
    assert [r.id for r in items] == [second.id, first.id]
    assert ensure_utc(items[0].created_at) >= ensure_utc(items[1].created_at)

    mine, mine_total = role_request_service.list_requests(
        db, PaginationParams(page=1, per_page=10), requester_account_id=first.requester_account_id
    )
    assert mine_total == 1
    assert mine[0].id == first.id
