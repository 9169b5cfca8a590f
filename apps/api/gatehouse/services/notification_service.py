"""Notification service - in-app notification outbox.

Notifications are fire-and-forget: they are written after the triggering
mutation has committed, and a failure here is logged and swallowed so it
can never undo an authorization change.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from gatehouse.db.enums import NotificationType, RoleRequestStatus
from gatehouse.db.models import HouseholdLink, Notification, RoleChangeRequest

logger = logging.getLogger(__name__)


# =============================================================================
# Notification CRUD
# =============================================================================


def create_notification(
    db: Session,
    account_id: UUID,
    type: NotificationType,
    title: str,
    body: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
) -> Notification:
    notification = Notification(
        account_id=account_id,
        type=type.value,
        title=title,
        body=body,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_notifications(
    db: Session,
    account_id: UUID,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    """Get notifications for an account, newest first."""
    query = db.query(Notification).filter(Notification.account_id == account_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def mark_read(db: Session, notification_id: UUID, account_id: UUID) -> Optional[Notification]:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.account_id == account_id,
    ).first()

    if notification and not notification.read_at:
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)

    return notification


def _dispatch(db: Session, **kwargs) -> Optional[Notification]:
    try:
        return create_notification(db, **kwargs)
    except Exception:
        # Never propagate: the authorization change has already committed
        logger.exception(
            "Failed to write %s notification for account %s",
            kwargs.get("type"),
            kwargs.get("account_id"),
        )
        db.rollback()
        return None


# =============================================================================
# Notification Triggers (called after commit by the mutating services)
# =============================================================================


def notify_role_request_decided(db: Session, request: RoleChangeRequest) -> Optional[Notification]:
    approved = request.status == RoleRequestStatus.APPROVED.value
    role_label = request.requested_role.replace("_", " ")
    if approved:
        title = f"Your request for {role_label} was approved"
        type_ = NotificationType.ROLE_REQUEST_APPROVED
    else:
        title = f"Your request for {role_label} was rejected"
        type_ = NotificationType.ROLE_REQUEST_REJECTED
    return _dispatch(
        db,
        account_id=request.requester_account_id,
        type=type_,
        title=title,
        body=request.decision_reason,
        entity_type="role_change_request",
        entity_id=request.id,
    )


def notify_household_linked(db: Session, link: HouseholdLink) -> Optional[Notification]:
    return _dispatch(
        db,
        account_id=link.linked_account_id,
        type=NotificationType.HOUSEHOLD_LINKED,
        title="You have been added to a household",
        entity_type="household_link",
        entity_id=link.id,
    )


def notify_household_revoked(db: Session, link: HouseholdLink) -> Optional[Notification]:
    return _dispatch(
        db,
        account_id=link.linked_account_id,
        type=NotificationType.HOUSEHOLD_REVOKED,
        title="Your household access was removed",
        entity_type="household_link",
        entity_id=link.id,
    )


def notify_account_decided(
    db: Session, account_id: UUID, approved: bool, reason: str | None = None
) -> Optional[Notification]:
    return _dispatch(
        db,
        account_id=account_id,
        type=NotificationType.ACCOUNT_APPROVED if approved else NotificationType.ACCOUNT_REJECTED,
        title="Your account was approved" if approved else "Your account was not approved",
        body=reason,
        entity_type="account",
        entity_id=account_id,
    )
