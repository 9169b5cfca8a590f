"""Enum definitions for application constants."""

from gatehouse.db.enums.audit import AuditAction
from gatehouse.db.enums.auth import (
    DEFAULT_LEVEL,
    EXPIRED_LEVEL,
    MAX_LEVEL,
    ROLE_LEVELS,
    TIME_BOUNDED_ROLES,
    AccountStatus,
    Role,
)
from gatehouse.db.enums.household import ConversionStep, RelationshipType
from gatehouse.db.enums.notifications import NotificationType
from gatehouse.db.enums.requests import (
    TERMINAL_REQUEST_STATUSES,
    RoleDecision,
    RoleRequestStatus,
)

__all__ = [
    "AccountStatus",
    "AuditAction",
    "ConversionStep",
    "DEFAULT_LEVEL",
    "EXPIRED_LEVEL",
    "MAX_LEVEL",
    "NotificationType",
    "ROLE_LEVELS",
    "RelationshipType",
    "Role",
    "RoleDecision",
    "RoleRequestStatus",
    "TERMINAL_REQUEST_STATUSES",
    "TIME_BOUNDED_ROLES",
]
