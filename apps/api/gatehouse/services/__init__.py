"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from gatehouse.services import (  # noqa: F401
    account_service,
    audit_service,
    authorization_service,
    household_service,
    module_service,
    notification_service,
    provisioning_service,
    role_request_service,
    role_service,
)
