"""Notification router (account-scoped)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gatehouse.core.deps import get_current_account, get_db, require_csrf_header
from gatehouse.core.errors import NotFoundError
from gatehouse.db.models import Account
from gatehouse.schemas.notification import NotificationRead
from gatehouse.services import notification_service

router = APIRouter(prefix="/me/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return notification_service.get_notifications(
        db, account.id, unread_only=unread_only, limit=limit, offset=offset
    )


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: UUID,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    notification = notification_service.mark_read(db, notification_id, account.id)
    if not notification:
        raise NotFoundError("Notification not found")
    return notification
