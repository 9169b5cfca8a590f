"""Household delegation schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class HouseholdLinkCreate(BaseModel):
    """
    Link a delegate to a primary resident.

    `linked` is an account id or an email. Unknown emails are provisioned
    and need display_name. Set confirmed=true to convert an existing
    resident after a 409 with requires_confirmation.
    """
    linked: str = Field(..., min_length=1, max_length=255)
    relationship_type: str
    permissions: dict[str, bool] | None = None
    expires_at: datetime | None = None
    confirmed: bool = False
    display_name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)


class HouseholdLinkRead(BaseModel):
    id: UUID
    primary_account_id: UUID
    linked_account_id: UUID
    relationship_type: str
    permissions: dict[str, bool]
    is_active: bool
    created_by: UUID | None
    created_at: datetime
    revoked_at: datetime | None

    model_config = {"from_attributes": True}


class HouseholdLinkResult(BaseModel):
    link: HouseholdLinkRead
    outcome: str
    provisioned: bool
    linked_access_expires_at: datetime | None
