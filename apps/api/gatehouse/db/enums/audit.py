"""Audit trail enums."""

from enum import Enum


class AuditAction(str, Enum):
    """
    Privileged mutations and denied privileged attempts.

    Groups:
    - ROLE_*: role request decisions and grants
    - HOUSEHOLD_*: delegation links and conversions
    - MODULE_*: community feature flags
    - ACCOUNT_*: account approval and access expiry
    - ACCESS_DENIED: level-gated reads refused at the HTTP layer
    """

    # Role requests
    ROLE_GRANT = "role_grant"
    ROLE_REQUEST_REJECT = "role_request_reject"
    ROLE_DECISION_DENIED = "role_decision_denied"
    ROLE_REQUEST_CANCEL_DENIED = "role_request_cancel_denied"

    # Household delegation
    HOUSEHOLD_LINK_CREATE = "household_link_create"
    HOUSEHOLD_LINK_REACTIVATE = "household_link_reactivate"
    HOUSEHOLD_LINK_UPDATE = "household_link_update"
    HOUSEHOLD_CONVERSION = "household_conversion"
    HOUSEHOLD_LINK_REVOKE = "household_link_revoke"
    HOUSEHOLD_LINK_DENIED = "household_link_denied"
    HOUSEHOLD_SCOPE_REPAIR = "household_scope_repair"

    # Modules
    MODULE_TOGGLE = "module_toggle"
    MODULE_TOGGLE_DENIED = "module_toggle_denied"
    MODULE_ROLE_REVOKE = "module_role_revoke"

    # Accounts
    ACCOUNT_APPROVE = "account_approve"
    ACCOUNT_REJECT = "account_reject"
    ACCOUNT_DECISION_DENIED = "account_decision_denied"

    GUEST_ACCESS_EXPIRED = "guest_access_expired"
    ROLE_BOOTSTRAP = "role_bootstrap"

    # Reads
    ACCESS_DENIED = "access_denied"
