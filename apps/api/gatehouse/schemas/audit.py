"""Audit trail schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditEntryRead(BaseModel):
    """Audit log entry for API response."""
    id: int
    actor_account_id: str | None
    action: str
    target_account_id: str | None
    target_type: str | None
    target_id: str | None
    community_id: str | None
    before_state: dict[str, Any] | None
    after_state: dict[str, Any] | None
    reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditListResponse(BaseModel):
    """Paginated audit log response."""
    items: list[AuditEntryRead]
    total: int
    page: int
    per_page: int
    pages: int


class AuditChainStatus(BaseModel):
    valid: bool
    broken_entry_id: int | None
