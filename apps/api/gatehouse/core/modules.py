"""Module registry: community feature areas and the roles they gate.

A community enables or disables modules; a disabled module hides the feature
and makes every role it gates unassignable in that community.
"""

from dataclasses import dataclass
from enum import Enum

from gatehouse.db.enums import Role


@dataclass(frozen=True)
class ModuleDef:
    """Module definition with metadata."""
    key: str
    label: str
    category: str
    delegable: bool = False  # Can be granted to household delegates


class ModuleCategory(str, Enum):
    """Module categories for UI grouping."""
    COMMUNICATION = "communication"
    COMMUNITY = "community"
    INFORMATION = "information"
    SERVICES = "services"
    FACILITIES = "facilities"
    SECURITY = "security"


# =============================================================================
# Module Registry
# =============================================================================

MODULE_REGISTRY: dict[str, ModuleDef] = {
    "announcements": ModuleDef("announcements", "Announcements", ModuleCategory.COMMUNICATION, delegable=True),
    "discussions": ModuleDef("discussions", "Community Discussions", ModuleCategory.COMMUNICATION, delegable=True),
    "directory": ModuleDef("directory", "Community Directory", ModuleCategory.INFORMATION),
    "events": ModuleDef("events", "Events & Activities", ModuleCategory.COMMUNITY),
    "marketplace": ModuleDef("marketplace", "Marketplace", ModuleCategory.COMMUNITY, delegable=True),
    "complaints": ModuleDef("complaints", "Complaints Management", ModuleCategory.SERVICES, delegable=True),
    "service_requests": ModuleDef("service_requests", "Service Requests", ModuleCategory.SERVICES),
    "facilities": ModuleDef("facilities", "Facilities Management", ModuleCategory.FACILITIES),
    "bookings": ModuleDef("bookings", "Facility Bookings", ModuleCategory.FACILITIES, delegable=True),
    "maintenance": ModuleDef("maintenance", "Maintenance Management", ModuleCategory.FACILITIES),
    "assets": ModuleDef("assets", "Asset Management", ModuleCategory.FACILITIES),
    "cctv": ModuleDef("cctv", "CCTV Monitoring", ModuleCategory.SECURITY),
    "visitor_management": ModuleDef("visitor_management", "Visitor Management", ModuleCategory.SECURITY),
    "security": ModuleDef("security", "Security Management", ModuleCategory.SECURITY),
}


# Roles tied to a module; roles not listed here are always assignable
ROLE_MODULES: dict[Role, str] = {
    Role.GUEST: "visitor_management",
    Role.SERVICE_PROVIDER: "marketplace",
    Role.MAINTENANCE_STAFF: "maintenance",
    Role.SECURITY_OFFICER: "security",
    Role.FACILITY_MANAGER: "facilities",
}


# Household permissions applied when the caller does not override them
DEFAULT_HOUSEHOLD_PERMISSIONS: dict[str, bool] = {
    "marketplace": False,
    "bookings": True,
    "announcements": True,
    "complaints": True,
    "discussions": False,
}


# =============================================================================
# Helper Functions
# =============================================================================

def is_valid_module(key: str) -> bool:
    """Check if module key exists."""
    return key in MODULE_REGISTRY


def gating_module(role: Role) -> str | None:
    """Module a role depends on, if any."""
    return ROLE_MODULES.get(role)


def delegable_modules() -> set[str]:
    return {key for key, module in MODULE_REGISTRY.items() if module.delegable}

