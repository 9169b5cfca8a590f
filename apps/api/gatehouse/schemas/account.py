"""Account approval schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from gatehouse.db.enums import RoleDecision


class AccountDecisionRequest(BaseModel):
    """Bulk approve/reject of pending accounts."""
    account_ids: list[UUID] = Field(..., min_length=1, max_length=100)
    decision: RoleDecision
    reason: str | None = Field(None, max_length=2000)


class AccountDecisionFailure(BaseModel):
    account_id: UUID
    error: str


class AccountDecisionResponse(BaseModel):
    approved: list[UUID]
    rejected: list[UUID]
    failed: list[AccountDecisionFailure]
