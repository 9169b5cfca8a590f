"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatehouse.db.base import Base
from gatehouse.db.enums import RoleRequestStatus
from gatehouse.utils.timestamps import now_utc

from gatehouse.db.models.accounts import Account


class RoleChangeRequest(Base):
    """
    Self-service request to hold an additional role.

    pending -> approved | rejected | cancelled (all terminal).
    `version` is bumped on every decision; reviewers must supply the
    version they read, so concurrent decisions resolve to exactly one winner.
    """

    __tablename__ = "role_change_requests"
    __table_args__ = (
        Index("idx_role_requests_status_created", "status", "created_at"),
        Index("idx_role_requests_requester", "requester_account_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    requester_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    requested_role: Mapped[str] = mapped_column(String(50), nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    community_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=RoleRequestStatus.PENDING.value, nullable=False
    )
    reviewer_account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=now_utc, onupdate=now_utc, nullable=False)

    # Relationships
    requester: Mapped["Account"] = relationship(foreign_keys=[requester_account_id])
    reviewer: Mapped["Account | None"] = relationship(foreign_keys=[reviewer_account_id])
