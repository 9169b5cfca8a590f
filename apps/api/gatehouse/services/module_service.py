"""Module gate - per-community feature flags.

Flags are read from the database on every call; nothing is cached, so a
toggle is visible to the very next authorization decision.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from gatehouse.core.config import settings
from gatehouse.core.errors import AuthorizationError, ValidationError
from gatehouse.core.modules import MODULE_REGISTRY, ROLE_MODULES, is_valid_module
from gatehouse.db.enums import AuditAction, Role
from gatehouse.db.models import Account, ModuleFlag, RoleAssignment
from gatehouse.services import audit_service, authorization_service, role_service

logger = logging.getLogger(__name__)


@dataclass
class ModuleToggleResult:
    flag: ModuleFlag
    revoked_assignments: int = 0


def is_module_enabled(db: Session, community_id: UUID | None, module: str) -> bool:
    """Missing flag row (or no community) means disabled."""
    if community_id is None:
        return False
    flag = (
        db.query(ModuleFlag.is_enabled)
        .filter(
            ModuleFlag.community_id == community_id,
            ModuleFlag.module_name == module,
        )
        .scalar()
    )
    return bool(flag)


def enabled_modules(db: Session, community_id: UUID | None) -> set[str]:
    if community_id is None:
        return set()
    rows = (
        db.query(ModuleFlag.module_name)
        .filter(
            ModuleFlag.community_id == community_id,
            ModuleFlag.is_enabled.is_(True),
        )
        .all()
    )
    return {row[0] for row in rows}


def list_modules(db: Session, community_id: UUID) -> list[dict]:
    """Full catalog with the community's enabled state, for admin screens."""
    enabled = enabled_modules(db, community_id)
    return [
        {
            "key": module.key,
            "label": module.label,
            "category": module.category.value,
            "delegable": module.delegable,
            "enabled": module.key in enabled,
        }
        for module in MODULE_REGISTRY.values()
    ]


def _revoke_gated_roles(db: Session, actor_id: UUID, community_id: UUID, module: str) -> int:
    """Deactivate the community's active assignments of roles gated by module."""
    roles = [role for role, gate in ROLE_MODULES.items() if gate == module]
    if not roles:
        return 0

    assignments = (
        db.query(RoleAssignment.account_id, RoleAssignment.role)
        .join(Account, Account.id == RoleAssignment.account_id)
        .filter(
            Account.community_id == community_id,
            RoleAssignment.role.in_([role.value for role in roles]),
            RoleAssignment.is_active.is_(True),
        )
        .order_by(RoleAssignment.account_id, RoleAssignment.role)
        .all()
    )
    for account_id, role_name in assignments:
        before = authorization_service.get_access_snapshot(db, account_id).as_state()
        role_service.deactivate_role(db, account_id, Role(role_name), actor_id)
        after = authorization_service.get_access_snapshot(db, account_id).as_state()
        audit_service.append(
            db,
            AuditAction.MODULE_ROLE_REVOKE,
            actor_account_id=actor_id,
            target_account_id=account_id,
            target_type="module_flag",
            target_id=module,
            community_id=community_id,
            before=before,
            after={**after, "role": role_name},
        )
    return len(assignments)


def set_module_enabled(
    db: Session,
    actor: Account,
    community_id: UUID,
    module: str,
    enabled: bool,
) -> ModuleToggleResult:
    """
    Enable or disable a module for a community.

    Community admins may only toggle their own community; higher levels
    may toggle any community. Disabling a module also ends the community's
    active assignments of the roles it gates, in the same transaction.

    Raises:
        ValidationError: Unknown module name
        AuthorizationError: Actor level too low or out of scope (audited)
    """
    if not is_valid_module(module):
        raise ValidationError(f"Unknown module: {module}", module=module)

    snapshot = authorization_service.get_access_snapshot(db, actor.id)
    denial = None
    if not authorization_service.authorize(snapshot, settings.MODULE_ADMIN_LEVEL):
        denial = "insufficient_level"
    elif snapshot.community_id != community_id and snapshot.level <= settings.MODULE_ADMIN_LEVEL:
        denial = "outside_community"

    if denial:
        audit_service.record_denied(
            db,
            AuditAction.MODULE_TOGGLE_DENIED,
            actor_account_id=actor.id,
            reason=denial,
            target_type="module_flag",
            target_id=module,
            community_id=community_id,
            attempted={"module": module, "enabled": enabled},
        )
        raise AuthorizationError("Not allowed to change modules for this community")

    flag = (
        db.query(ModuleFlag)
        .filter(
            ModuleFlag.community_id == community_id,
            ModuleFlag.module_name == module,
        )
        .first()
    )
    before = {"module": module, "enabled": bool(flag and flag.is_enabled)}
    if flag is None:
        flag = ModuleFlag(community_id=community_id, module_name=module, is_enabled=enabled)
        db.add(flag)
    else:
        flag.is_enabled = enabled
    flag.updated_by = actor.id
    db.flush()

    audit_service.append(
        db,
        AuditAction.MODULE_TOGGLE,
        actor_account_id=actor.id,
        target_type="module_flag",
        target_id=module,
        community_id=community_id,
        before=before,
        after={"module": module, "enabled": enabled},
    )
    revoked = 0 if enabled else _revoke_gated_roles(db, actor.id, community_id, module)
    db.commit()
    db.refresh(flag)

    logger.info(
        "Module %s set enabled=%s for community %s (%s role assignments revoked)",
        module, enabled, community_id, revoked,
    )
    return ModuleToggleResult(flag=flag, revoked_assignments=revoked)


