"""SQLAlchemy ORM models."""

from gatehouse.db.models.accounts import Account, RoleAssignment
from gatehouse.db.models.audit import AuditLogEntry, AuditLogImmutableError
from gatehouse.db.models.household import HouseholdLink
from gatehouse.db.models.modules import ModuleFlag
from gatehouse.db.models.notifications import Notification
from gatehouse.db.models.requests import RoleChangeRequest

__all__ = [
    "Account",
    "AuditLogEntry",
    "AuditLogImmutableError",
    "HouseholdLink",
    "ModuleFlag",
    "Notification",
    "RoleAssignment",
    "RoleChangeRequest",
]
