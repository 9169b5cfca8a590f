"""Authentication and access Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # account_id
    token_version: int


class AccessRead(BaseModel):
    """
    Effective access for an account.

    Computed by the evaluator from one consistent read; clients render
    navigation from this instead of comparing roles themselves.
    """
    account_id: UUID
    community_id: UUID | None
    unit: str | None
    roles: list[str]
    level: int
    expired: bool
    access_expires_at: datetime | None
    modules: list[str]
