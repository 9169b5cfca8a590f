"""Community module flags router."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatehouse.core.deps import get_current_account, get_db, require_csrf_header
from gatehouse.db.models import Account
from gatehouse.schemas.module import ModuleRead, ModuleUpdate
from gatehouse.services import module_service

router = APIRouter(prefix="/communities", tags=["Modules"])


@router.get("/{community_id}/modules", response_model=list[ModuleRead])
def list_community_modules(
    community_id: UUID,
    _: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """Module catalog with enabled state for the community."""
    return module_service.list_modules(db, community_id)


@router.put("/{community_id}/modules/{module}", response_model=ModuleRead)
def set_community_module(
    community_id: UUID,
    module: str,
    body: ModuleUpdate,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    module_service.set_module_enabled(db, account, community_id, module, body.enabled)
    return next(m for m in module_service.list_modules(db, community_id) if m["key"] == module)
