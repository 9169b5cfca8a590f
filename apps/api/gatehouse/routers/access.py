"""Access router - effective level, roles and modules for an account."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatehouse.core.deps import get_current_account, get_db, require_level
from gatehouse.db.models import Account
from gatehouse.schemas.auth import AccessRead
from gatehouse.services import authorization_service

router = APIRouter(tags=["Access"])


def _access_read(db: Session, account_id: UUID) -> AccessRead:
    snapshot = authorization_service.get_access_snapshot(db, account_id)
    return AccessRead(
        account_id=snapshot.account_id,
        community_id=snapshot.community_id,
        unit=snapshot.unit,
        roles=snapshot.role_names,
        level=snapshot.level,
        expired=snapshot.expired,
        access_expires_at=snapshot.access_expires_at,
        modules=authorization_service.accessible_modules(db, snapshot),
    )


@router.get("/me/access", response_model=AccessRead)
def get_my_access(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """Effective access of the signed-in account."""
    return _access_read(db, account.id)


@router.get("/accounts/{account_id}/authorization", response_model=AccessRead)
def get_account_access(
    account_id: UUID,
    _: Account = Depends(require_level("HOUSEHOLD_ADMIN_LEVEL")),
    db: Session = Depends(get_db),
):
    """Effective access of any account (administrators)."""
    return _access_read(db, account_id)
