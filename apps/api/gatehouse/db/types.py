"""Portable column types (JSONB on PostgreSQL, JSON elsewhere)."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JsonDict = JSON().with_variant(JSONB(), "postgresql")
