"""Role hierarchy and authorization evaluator.

The single place that turns role assignments into privilege decisions.
Callers never compare role strings or levels themselves; they ask this
module. Nothing here writes to the database.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session

from gatehouse.core.errors import NotFoundError
from gatehouse.core.modules import gating_module
from gatehouse.db.enums import (
    DEFAULT_LEVEL,
    EXPIRED_LEVEL,
    MAX_LEVEL,
    ROLE_LEVELS,
    TIME_BOUNDED_ROLES,
    Role,
)
from gatehouse.db.models import Account, HouseholdLink, RoleAssignment
from gatehouse.utils.timestamps import is_past

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessSnapshot:
    """Everything one authorization decision needs, read in a single query."""

    account_id: UUID
    community_id: UUID | None
    district_id: UUID | None
    unit: str | None
    status: str
    roles: frozenset[Role]
    access_expires_at: datetime | None
    expired: bool

    @property
    def level(self) -> int:
        return effective_level(self)

    @property
    def role_names(self) -> list[str]:
        return sorted(role.value for role in self.roles)

    def as_state(self) -> dict:
        """Redacted snapshot for audit before/after states."""
        return {"roles": self.role_names, "level": self.level}


def get_access_snapshot(
    db: Session, account_id: UUID, now: datetime | None = None
) -> AccessSnapshot:
    """
    Load an account and its active roles in one statement.

    Raises:
        NotFoundError: Unknown account
    """
    rows = (
        db.query(Account, RoleAssignment.role)
        .outerjoin(
            RoleAssignment,
            and_(
                RoleAssignment.account_id == Account.id,
                RoleAssignment.is_active.is_(True),
            ),
        )
        .filter(Account.id == account_id)
        .all()
    )
    if not rows:
        raise NotFoundError("Account not found", account_id=str(account_id))

    account = rows[0][0]
    roles = set()
    for _, role_name in rows:
        if role_name is None:
            continue
        if not Role.has_value(role_name):
            logger.warning("Ignoring unknown role %r on account %s", role_name, account.id)
            continue
        roles.add(Role(role_name))

    return AccessSnapshot(
        account_id=account.id,
        community_id=account.community_id,
        district_id=account.district_id,
        unit=account.unit,
        status=account.status,
        roles=frozenset(roles),
        access_expires_at=account.access_expires_at,
        expired=is_past(account.access_expires_at, now),
    )


def effective_level(snapshot: AccessSnapshot) -> int:
    """Max level over active roles, 1 when none, 0 once access has expired."""
    if snapshot.expired:
        return EXPIRED_LEVEL
    if not snapshot.roles:
        return DEFAULT_LEVEL
    return max(ROLE_LEVELS[role] for role in snapshot.roles)


def get_effective_level(db: Session, account_id: UUID, now: datetime | None = None) -> int:
    return effective_level(get_access_snapshot(db, account_id, now))


def authorize(snapshot: AccessSnapshot, required_level: int) -> bool:
    """Allow when the effective level reaches required_level."""
    return effective_level(snapshot) >= required_level


def has_role(snapshot: AccessSnapshot, role: Role) -> bool:
    """Active assignment matches; time-bounded roles must also be unexpired."""
    if role not in snapshot.roles:
        return False
    if role in TIME_BOUNDED_ROLES and snapshot.expired:
        return False
    return True


def is_staff(snapshot: AccessSnapshot) -> bool:
    """Holds any role other than resident/guest."""
    return any(role not in (Role.RESIDENT, Role.GUEST) for role in snapshot.roles)


def can_assign_role(db: Session, role: Role, community_id: UUID | None) -> bool:
    """A role tied to a module is assignable only where that module is enabled."""
    from gatehouse.services import module_service

    module = gating_module(role)
    if module is None:
        return True
    return module_service.is_module_enabled(db, community_id, module)


def can_grant_role(granter_level: int, role: Role) -> bool:
    """Granters hand out roles strictly below their own level; the top level grants anything."""
    if granter_level >= MAX_LEVEL:
        return True
    return ROLE_LEVELS[role] < granter_level


def has_module_access(db: Session, snapshot: AccessSnapshot, module: str) -> bool:
    """
    Module usable by this account.

    The module must be enabled for the account's community. Household
    delegates (accounts with active links as the linked side) additionally
    need a link whose permissions grant the module, unless they also hold
    a staff role.
    """
    from gatehouse.services import module_service

    if snapshot.expired:
        return False
    if not module_service.is_module_enabled(db, snapshot.community_id, module):
        return False
    if is_staff(snapshot):
        return True

    links = (
        db.query(HouseholdLink.permissions)
        .filter(
            HouseholdLink.linked_account_id == snapshot.account_id,
            HouseholdLink.is_active.is_(True),
        )
        .all()
    )
    if not links:
        return True
    return any((permissions or {}).get(module) is True for (permissions,) in links)


def accessible_modules(db: Session, snapshot: AccessSnapshot) -> list[str]:
    """Module keys this account may use, in registry order."""
    from gatehouse.core.modules import MODULE_REGISTRY

    return [key for key in MODULE_REGISTRY if has_module_access(db, snapshot, key)]
