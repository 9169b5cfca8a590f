"""SQLAlchemy ORM models."""

from datetime import datetime

from sqlalchemy import BigInteger, Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from gatehouse.db.base import Base
from gatehouse.db.types import JsonDict
from gatehouse.utils.timestamps import now_utc


class AuditLogEntry(Base):
    """
    Append-only audit log of privileged mutations and denied attempts.

    Security:
    - Never stores secrets/tokens
    - Emails are hashed in details; snapshots hold IDs and role names
    - Rows are never updated or deleted (ORM guards below)
    - Hash chain makes tampering detectable

    Account references are plain columns (no FK) so account lifecycle
    changes never touch audit rows.
    """

    __tablename__ = "audit_log_entries"
    __table_args__ = (
        Index("idx_audit_created", "created_at"),
        Index("idx_audit_actor_created", "actor_account_id", "created_at"),
        Index("idx_audit_target_created", "target_account_id", "created_at"),
        Index("idx_audit_action_created", "action", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    actor_account_id: Mapped[str | None] = mapped_column(String(36), nullable=True)  # None = system
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditAction
    target_account_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Non-account targets (request, link, module flag)
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    community_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    before_state: Mapped[dict | None] = mapped_column(JsonDict, nullable=True)
    after_state: Mapped[dict | None] = mapped_column(JsonDict, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Tamper-evident hash chain
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)  # SHA256 hex
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=now_utc, nullable=False)


class AuditLogImmutableError(RuntimeError):
    """Raised when code attempts to modify or delete an audit entry."""


@event.listens_for(AuditLogEntry, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit entry {target.id} is append-only")


@event.listens_for(AuditLogEntry, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit entry {target.id} is append-only")
