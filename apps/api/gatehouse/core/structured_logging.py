"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any

from gatehouse.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for an entry point (API, CLI)."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )


def build_log_context(
    *,
    actor_id: Any = None,
    target_id: Any = None,
    community_id: Any = None,
    request_id: str | None = None,
    action: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (IDs only, never emails or names)."""
    context: dict[str, Any] = {}
    if actor_id:
        context["actor_id"] = str(actor_id)
    if target_id:
        context["target_id"] = str(target_id)
    if community_id:
        context["community_id"] = str(community_id)
    if request_id:
        context["request_id"] = request_id
    if action:
        context["action"] = action
    return context
