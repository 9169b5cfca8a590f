"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatehouse.db.base import Base
from gatehouse.db.enums import AccountStatus
from gatehouse.utils.timestamps import now_utc


class Account(Base):
    """
    A resident, staff member, administrator or delegate.

    Identity is established upstream (auth_subject); this row holds the
    community scoping and lifecycle state the authorization engine reads.
    Never hard-deleted here.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index("idx_accounts_community", "community_id"),
        Index("idx_accounts_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_subject: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)  # lowercased
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=AccountStatus.PENDING.value, nullable=False
    )

    # Scoping
    community_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    district_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Required for guests/tenants, must be NULL for residents and staff
    access_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Session revocation
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=now_utc, onupdate=now_utc, nullable=False)

    # Relationships
    role_assignments: Mapped[list["RoleAssignment"]] = relationship(
        back_populates="account",
        foreign_keys="RoleAssignment.account_id",
    )


class RoleAssignment(Base):
    """
    A role held by an account.

    One row per (account, role); re-granting reactivates the row.
    Effective level is computed from active rows only.
    """

    __tablename__ = "role_assignments"
    __table_args__ = (
        UniqueConstraint("account_id", "role", name="uq_role_assignment_account_role"),
        Index("idx_role_assignments_account_active", "account_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False)  # Role
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    assigned_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)
    deactivated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    account: Mapped["Account"] = relationship(
        back_populates="role_assignments", foreign_keys=[account_id]
    )
