"""Role change request schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from gatehouse.db.enums import RoleDecision


class RoleRequestCreate(BaseModel):
    requested_role: str
    justification: str = Field(..., min_length=1, max_length=2000)


class RoleRequestDecision(BaseModel):
    """Reviewer decision; version is the one the reviewer last read."""
    decision: RoleDecision
    version: int = Field(..., ge=1)
    reason: str | None = Field(None, max_length=2000)


class RoleRequestRead(BaseModel):
    id: UUID
    requester_account_id: UUID
    requested_role: str
    justification: str
    community_id: UUID | None
    status: str
    reviewer_account_id: UUID | None
    decision_reason: str | None
    decision_at: datetime | None
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}


class RoleRequestListResponse(BaseModel):
    """Paginated list response for role change requests."""
    items: list[RoleRequestRead]
    total: int
    page: int
    per_page: int
    pages: int
