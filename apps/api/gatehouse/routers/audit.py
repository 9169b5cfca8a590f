"""Audit router - API endpoints for viewing the audit trail."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gatehouse.core.deps import get_db, require_level
from gatehouse.db.enums import MAX_LEVEL, AuditAction
from gatehouse.db.models import Account
from gatehouse.schemas.audit import AuditChainStatus, AuditListResponse
from gatehouse.services import audit_service
from gatehouse.utils.pagination import PaginationParams, get_pagination

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=AuditListResponse)
def list_audit_entries(
    actor_account_id: UUID | None = Query(None, description="Filter by actor"),
    target_account_id: UUID | None = Query(None, description="Filter by target account"),
    action: AuditAction | None = Query(None, description="Filter by action"),
    since: datetime | None = Query(None, description="Entries at or after this time"),
    until: datetime | None = Query(None, description="Entries at or before this time"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    pagination: PaginationParams = Depends(get_pagination),
    _: Account = Depends(require_level("HOUSEHOLD_ADMIN_LEVEL")),
    db: Session = Depends(get_db),
) -> AuditListResponse:
    """
    List audit entries.

    Requires: community admin level
    Filters: actor, target, action, time range
    """
    entries, total = audit_service.query(
        db,
        pagination,
        actor_account_id=actor_account_id,
        target_account_id=target_account_id,
        action=action,
        since=since,
        until=until,
        descending=order == "desc",
    )
    return AuditListResponse(
        items=entries,
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.pages(total),
    )


@router.get("/verify", response_model=AuditChainStatus)
def verify_audit_chain(
    _: Account = Depends(require_level(MAX_LEVEL)),
    db: Session = Depends(get_db),
):
    """Recompute the hash chain (state administrators)."""
    valid, broken_id = audit_service.verify_chain(db)
    return AuditChainStatus(valid=valid, broken_entry_id=broken_id)
