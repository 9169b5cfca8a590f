"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatehouse.db.base import Base
from gatehouse.db.types import JsonDict
from gatehouse.utils.timestamps import now_utc

from gatehouse.db.models.accounts import Account


class HouseholdLink(Base):
    """
    Directed delegation edge: primary (unit owner) -> linked (delegate).

    The linked account gains module-scoped access under the primary's unit,
    never an elevated role. One row per pair; revoking soft-deletes and
    re-linking reactivates the same row.
    """

    __tablename__ = "household_links"
    __table_args__ = (
        UniqueConstraint(
            "primary_account_id", "linked_account_id", name="uq_household_link_pair"
        ),
        Index("idx_household_primary_active", "primary_account_id", "is_active", "created_at"),
        Index("idx_household_linked_active", "linked_account_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    primary_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    linked_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(String(20), nullable=False)  # RelationshipType
    permissions: Mapped[dict] = mapped_column(JsonDict, default=dict, nullable=False)  # module -> bool
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=now_utc, onupdate=now_utc, nullable=False)
    revoked_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    primary: Mapped["Account"] = relationship(foreign_keys=[primary_account_id])
    linked: Mapped["Account"] = relationship(foreign_keys=[linked_account_id])
