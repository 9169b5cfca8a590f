"""Rate limiting configuration for the Gatehouse API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from gatehouse.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

# In-memory storage; each worker enforces its own window
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)


def role_request_limit() -> str:
    """Per-client limit for role request submissions."""
    return f"{settings.RATE_LIMIT_ROLE_REQUESTS}/minute"
