"""Tests for per-community module flags."""

import uuid

import pytest

from gatehouse.core.errors import AuthorizationError, ValidationError
from gatehouse.db.enums import AuditAction, Role
from gatehouse.db.models import AuditLogEntry, ModuleFlag, RoleAssignment
from gatehouse.services import authorization_service, module_service


def test_missing_flag_means_disabled(db, community_id):
    assert module_service.is_module_enabled(db, community_id, "security") is False
    assert module_service.is_module_enabled(db, None, "security") is False


def test_toggle_is_visible_to_next_decision(db, admin, community_id):
    assert not authorization_service.can_assign_role(db, Role.SECURITY_OFFICER, community_id)

    module_service.set_module_enabled(db, admin, community_id, "security", True)
    assert authorization_service.can_assign_role(db, Role.SECURITY_OFFICER, community_id)

    module_service.set_module_enabled(db, admin, community_id, "security", False)
    assert not authorization_service.can_assign_role(db, Role.SECURITY_OFFICER, community_id)
    assert db.query(ModuleFlag).count() == 1


def test_toggle_is_audited(db, admin, community_id):
    module_service.set_module_enabled(db, admin, community_id, "marketplace", True)

    entry = db.query(AuditLogEntry).one()
    assert entry.action == AuditAction.MODULE_TOGGLE.value
    assert entry.target_id == "marketplace"
    assert entry.before_state == {"module": "marketplace", "enabled": False}
    assert entry.after_state == {"module": "marketplace", "enabled": True}


def test_unknown_module_rejected(db, admin, community_id):
    with pytest.raises(ValidationError):
        module_service.set_module_enabled(db, admin, community_id, "teleporter", True)
    assert db.query(AuditLogEntry).count() == 0


def test_low_level_actor_denied_and_audited(db, resident, community_id):
    with pytest.raises(AuthorizationError):
        module_service.set_module_enabled(db, resident, community_id, "security", True)

    entry = db.query(AuditLogEntry).one()
    assert entry.action == AuditAction.MODULE_TOGGLE_DENIED.value
    assert entry.reason == "insufficient_level"
    assert db.query(ModuleFlag).count() == 0


def test_community_admin_cannot_toggle_other_community(db, admin):
    with pytest.raises(AuthorizationError):
        module_service.set_module_enabled(db, admin, uuid.uuid4(), "security", True)

    assert db.query(AuditLogEntry).one().reason == "outside_community"


def test_state_admin_toggles_any_community(db, state_admin):
    other = uuid.uuid4()
    result = module_service.set_module_enabled(db, state_admin, other, "events", True)
    assert result.flag.community_id == other
    assert module_service.enabled_modules(db, other) == {"events"}


def test_list_modules_reports_enabled_state(db, community_id, enable_modules):
    enable_modules("cctv")
    catalog = {m["key"]: m for m in module_service.list_modules(db, community_id)}

    assert catalog["cctv"]["enabled"] is True
    assert catalog["events"]["enabled"] is False
    assert catalog["bookings"]["delegable"] is True


# =============================================================================
# Disabling revokes gated roles
# =============================================================================

def test_disabling_module_revokes_gated_roles(db, admin, make_account, enable_modules):
    enable_modules("security")
    officer = make_account(Role.SECURITY_OFFICER)
    assert authorization_service.get_effective_level(db, officer.id) == 6

    result = module_service.set_module_enabled(db, admin, admin.community_id, "security", False)

    assert result.revoked_assignments == 1
    assert authorization_service.get_effective_level(db, officer.id) == 1
    assignment = db.query(RoleAssignment).filter(RoleAssignment.account_id == officer.id).one()
    assert assignment.is_active is False
    assert assignment.deactivated_by == admin.id

    entries = (
        db.query(AuditLogEntry)
        .filter(AuditLogEntry.action == AuditAction.MODULE_ROLE_REVOKE.value)
        .all()
    )
    assert len(entries) == 1
    assert entries[0].target_account_id == str(officer.id)
    assert entries[0].before_state["level"] == 6
    assert entries[0].after_state["role"] == "security_officer"


def test_disabling_module_leaves_other_roles_and_communities(db, admin, make_account, enable_modules):
    enable_modules("security")
    elsewhere = make_account(Role.SECURITY_OFFICER, community=uuid.uuid4())
    staff = make_account(Role.MAINTENANCE_STAFF)

    result = module_service.set_module_enabled(db, admin, admin.community_id, "security", False)

    assert result.revoked_assignments == 0
    assert authorization_service.get_effective_level(db, elsewhere.id) == 6
    assert authorization_service.has_role(
        authorization_service.get_access_snapshot(db, staff.id), Role.MAINTENANCE_STAFF
    )


def test_enabling_module_revokes_nothing(db, admin, make_account, enable_modules):
    enable_modules("security")
    officer = make_account(Role.SECURITY_OFFICER)

    result = module_service.set_module_enabled(db, admin, admin.community_id, "security", True)

    assert result.revoked_assignments == 0
    assert authorization_service.get_effective_level(db, officer.id) == 6
