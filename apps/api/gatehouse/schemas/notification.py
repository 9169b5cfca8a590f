"""Notification schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: UUID
    type: str
    title: str
    body: str | None
    entity_type: str | None
    entity_id: str | None
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
