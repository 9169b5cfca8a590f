"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gatehouse.db.base import Base
from gatehouse.utils.timestamps import now_utc


class ModuleFlag(Base):
    """Per-community feature flag. Missing row = module disabled."""

    __tablename__ = "module_flags"
    __table_args__ = (
        UniqueConstraint("community_id", "module_name", name="uq_module_flag_community_module"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    community_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    module_name: Mapped[str] = mapped_column(String(50), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(default=False, nullable=False)

    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(default=now_utc, onupdate=now_utc, nullable=False)
