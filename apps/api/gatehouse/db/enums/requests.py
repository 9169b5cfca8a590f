"""Role change request enums."""

from enum import Enum


class RoleRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


TERMINAL_REQUEST_STATUSES = {
    RoleRequestStatus.APPROVED,
    RoleRequestStatus.REJECTED,
    RoleRequestStatus.CANCELLED,
}


class RoleDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
