"""Audit trail service - append-only record of privileged mutations.

Every completed privileged mutation and every denied privileged attempt
writes exactly one entry. Entries are appended inside the caller's
transaction (flushed, not committed) so the audit row commits or rolls
back together with the mutation it describes.

Security guidelines:
- NEVER log secrets (API keys, tokens, passwords)
- Hash emails before they reach before/after snapshots (use hash_email)
- Use IDs and role names instead of raw profile data
"""

import hashlib
import json
import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from gatehouse.db.enums import AuditAction
from gatehouse.db.models import AuditLogEntry
from gatehouse.utils.pagination import PaginationParams, paginate_query
from gatehouse.utils.timestamps import ensure_utc, now_utc

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64  # prev_hash of the first entry


def hash_email(email: str) -> str:
    """Hash email for audit snapshots (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def canonical_json(obj: dict | None) -> str:
    """
    Serialize object to canonical JSON for consistent hashing.

    Uses sorted keys, compact separators, and str() for non-JSON types.
    This MUST be used consistently everywhere hashes are computed.
    """
    return json.dumps(obj or {}, sort_keys=True, separators=(",", ":"), default=str)


def _str(value: Any) -> str:
    return str(value) if value is not None else ""


def compute_entry_hash(
    prev_hash: str,
    action: str,
    created_at: datetime,
    actor_account_id: str = "",
    target_account_id: str = "",
    target_type: str = "",
    target_id: str = "",
    community_id: str = "",
    before_json: str = "{}",
    after_json: str = "{}",
    reason: str = "",
) -> str:
    """
    Hash = SHA256(all immutable fields joined with |).

    created_at is normalized to UTC ISO format so the hash survives a
    round trip through stores that drop tzinfo.
    """
    data = "|".join([
        prev_hash,
        action,
        ensure_utc(created_at).isoformat(),
        actor_account_id,
        target_account_id,
        target_type,
        target_id,
        community_id,
        before_json,
        after_json,
        reason,
    ])
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _hash_for(entry: AuditLogEntry, prev_hash: str) -> str:
    return compute_entry_hash(
        prev_hash=prev_hash,
        action=entry.action,
        created_at=entry.created_at,
        actor_account_id=entry.actor_account_id or "",
        target_account_id=entry.target_account_id or "",
        target_type=entry.target_type or "",
        target_id=entry.target_id or "",
        community_id=entry.community_id or "",
        before_json=canonical_json(entry.before_state),
        after_json=canonical_json(entry.after_state),
        reason=entry.reason or "",
    )


def get_last_hash(db: Session) -> str:
    """Hash of the most recent entry (created_at + id for deterministic ordering)."""
    result = db.execute(
        select(AuditLogEntry.entry_hash)
        .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .limit(1)
    ).scalar()
    return result or GENESIS_HASH


def append(
    db: Session,
    action: AuditAction,
    actor_account_id: UUID | None = None,
    target_account_id: UUID | None = None,
    target_type: str | None = None,
    target_id: Any = None,
    community_id: UUID | None = None,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    reason: str | None = None,
) -> AuditLogEntry:
    """
    Append an audit entry with hash chain.

    Args:
        db: Database session (caller commits)
        action: What happened (from AuditAction)
        actor_account_id: Account that acted (None for system jobs)
        target_account_id: Account affected, if any
        target_type: Non-account entity affected (e.g. 'role_change_request')
        target_id: ID of that entity
        community_id: Community context
        before: Snapshot before the change (redacted, JSON-safe)
        after: Snapshot after the change, or the attempted change for denials
        reason: Reviewer reason or denial cause

    Returns:
        The flushed entry
    """
    prev_hash = get_last_hash(db)
    entry = AuditLogEntry(
        actor_account_id=_str(actor_account_id) or None,
        action=action.value,
        target_account_id=_str(target_account_id) or None,
        target_type=target_type,
        target_id=_str(target_id) or None,
        community_id=_str(community_id) or None,
        before_state=json.loads(canonical_json(before)) if before is not None else None,
        after_state=json.loads(canonical_json(after)) if after is not None else None,
        reason=reason,
        prev_hash=prev_hash,
        created_at=now_utc(),
    )
    entry.entry_hash = _hash_for(entry, prev_hash)
    db.add(entry)
    db.flush()

    logger.info(
        "Audit %s actor=%s target=%s",
        action.value,
        entry.actor_account_id or "system",
        entry.target_account_id or entry.target_id or "-",
    )
    return entry


def record_denied(
    db: Session,
    action: AuditAction,
    actor_account_id: UUID | None,
    reason: str,
    target_account_id: UUID | None = None,
    target_type: str | None = None,
    target_id: Any = None,
    community_id: UUID | None = None,
    attempted: dict[str, Any] | None = None,
) -> AuditLogEntry:
    """
    Record a denied privileged attempt and commit it on its own.

    Callers raise right after, so the entry must not depend on the
    (abandoned) mutation's transaction.
    """
    db.rollback()
    entry = append(
        db,
        action=action,
        actor_account_id=actor_account_id,
        target_account_id=target_account_id,
        target_type=target_type,
        target_id=target_id,
        community_id=community_id,
        after=attempted,
        reason=reason,
    )
    db.commit()
    logger.warning(
        "Denied %s actor=%s reason=%s", action.value, actor_account_id, reason
    )
    return entry


def query(
    db: Session,
    pagination: PaginationParams,
    actor_account_id: UUID | None = None,
    target_account_id: UUID | None = None,
    action: AuditAction | str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    descending: bool = True,
) -> tuple[list[AuditLogEntry], int]:
    """
    Filtered, paginated audit entries ordered by timestamp.

    Returns:
        (entries, total_count)
    """
    q = db.query(AuditLogEntry)
    if actor_account_id:
        q = q.filter(AuditLogEntry.actor_account_id == str(actor_account_id))
    if target_account_id:
        q = q.filter(AuditLogEntry.target_account_id == str(target_account_id))
    if action:
        q = q.filter(AuditLogEntry.action == (action.value if isinstance(action, AuditAction) else action))
    if since:
        q = q.filter(AuditLogEntry.created_at >= since)
    if until:
        q = q.filter(AuditLogEntry.created_at <= until)

    if descending:
        q = q.order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
    else:
        q = q.order_by(AuditLogEntry.created_at.asc(), AuditLogEntry.id.asc())

    return paginate_query(q, pagination)


def verify_chain(db: Session) -> tuple[bool, int | None]:
    """
    Walk the chain oldest-first and recompute every hash.

    Returns:
        (is_valid, id of the first broken entry or None)
    """
    prev_hash = GENESIS_HASH
    entries = db.query(AuditLogEntry).order_by(
        AuditLogEntry.created_at.asc(), AuditLogEntry.id.asc()
    )
    for entry in entries.yield_per(500):
        if entry.prev_hash != prev_hash or _hash_for(entry, prev_hash) != entry.entry_hash:
            logger.error("Audit chain broken at entry %s", entry.id)
            return False, entry.id
        prev_hash = entry.entry_hash
    return True, None
