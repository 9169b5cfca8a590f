"""Account and role enums."""

from enum import Enum


class Role(str, Enum):
    """
    Community roles. Privilege levels live in ROLE_LEVELS below,
    the single hierarchy table every authorization check reads.

    - GUEST: time-bounded delegate access (tenants, family members)
    - RESIDENT: unit owner, may create household delegations
    - COMMUNITY_LEADER / SERVICE_PROVIDER: community-facing roles
    - MAINTENANCE_STAFF / SECURITY_OFFICER / FACILITY_MANAGER: staff
    - COMMUNITY_ADMIN / DISTRICT_COORDINATOR / STATE_ADMIN: administrators
    """

    GUEST = "guest"
    RESIDENT = "resident"
    COMMUNITY_LEADER = "community_leader"
    SERVICE_PROVIDER = "service_provider"
    MAINTENANCE_STAFF = "maintenance_staff"
    SECURITY_OFFICER = "security_officer"
    FACILITY_MANAGER = "facility_manager"
    COMMUNITY_ADMIN = "community_admin"
    DISTRICT_COORDINATOR = "district_coordinator"
    STATE_ADMIN = "state_admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


ROLE_LEVELS: dict[Role, int] = {
    Role.GUEST: 1,
    Role.RESIDENT: 1,
    Role.COMMUNITY_LEADER: 3,
    Role.SERVICE_PROVIDER: 4,
    Role.MAINTENANCE_STAFF: 5,
    Role.SECURITY_OFFICER: 6,
    Role.FACILITY_MANAGER: 7,
    Role.COMMUNITY_ADMIN: 8,
    Role.DISTRICT_COORDINATOR: 9,
    Role.STATE_ADMIN: 10,
}

DEFAULT_LEVEL = 1  # No active assignment: treated as a resident
EXPIRED_LEVEL = 0
MAX_LEVEL = max(ROLE_LEVELS.values())

# Roles whose holders must carry access_expires_at
TIME_BOUNDED_ROLES = {Role.GUEST}


class AccountStatus(str, Enum):
    """Account lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    INACTIVE = "inactive"
