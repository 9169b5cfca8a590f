"""Account lifecycle - approval of pending registrations and guest expiry."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from gatehouse.core.config import settings
from gatehouse.core.errors import AuthorizationError, ValidationError
from gatehouse.db.enums import AccountStatus, AuditAction, Role, RoleDecision
from gatehouse.db.models import Account, RoleAssignment
from gatehouse.services import (
    audit_service,
    authorization_service,
    notification_service,
    role_service,
)
from gatehouse.utils.normalization import is_valid_email, normalize_email
from gatehouse.utils.timestamps import is_past, now_utc

logger = logging.getLogger(__name__)

MAX_BULK_DECISIONS = 100


@dataclass
class AccountDecisionResult:
    approved: list[UUID] = field(default_factory=list)
    rejected: list[UUID] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)  # {"account_id", "error"}


def get_account_by_email(db: Session, email: str) -> Account | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(Account).filter(Account.email == normalized).first()


def decide_accounts(
    db: Session,
    actor: Account,
    account_ids: list[UUID],
    decision: RoleDecision,
    reason: str | None = None,
) -> AccountDecisionResult:
    """
    Bulk approve or reject pending accounts.

    Each account is decided independently; accounts that are missing, not
    pending or outside the actor's community are reported as failed.
    One audit entry per decided account, all committed together.

    Raises:
        ValidationError: Empty or oversized batch
        AuthorizationError: Actor level too low (audited)
    """
    if not account_ids:
        raise ValidationError("No accounts supplied")
    if len(account_ids) > MAX_BULK_DECISIONS:
        raise ValidationError(f"At most {MAX_BULK_DECISIONS} accounts per request")

    actor_snapshot = authorization_service.get_access_snapshot(db, actor.id)
    if not authorization_service.authorize(actor_snapshot, settings.ACCOUNT_APPROVAL_LEVEL):
        audit_service.record_denied(
            db,
            AuditAction.ACCOUNT_DECISION_DENIED,
            actor_account_id=actor.id,
            reason="insufficient_level",
            attempted={"decision": decision.value, "count": len(account_ids)},
        )
        raise AuthorizationError("Insufficient level to decide accounts")

    cross_community = actor_snapshot.level > settings.ACCOUNT_APPROVAL_LEVEL
    approve = decision == RoleDecision.APPROVED
    new_status = AccountStatus.APPROVED if approve else AccountStatus.REJECTED
    result = AccountDecisionResult()

    for account_id in dict.fromkeys(account_ids):
        account = db.get(Account, account_id)
        if account is None:
            result.failed.append({"account_id": account_id, "error": "not_found"})
            continue
        if account.status != AccountStatus.PENDING.value:
            result.failed.append({"account_id": account_id, "error": "not_pending"})
            continue
        if not cross_community and account.community_id != actor_snapshot.community_id:
            result.failed.append({"account_id": account_id, "error": "outside_community"})
            continue

        account.status = new_status.value
        db.flush()
        audit_service.append(
            db,
            AuditAction.ACCOUNT_APPROVE if approve else AuditAction.ACCOUNT_REJECT,
            actor_account_id=actor.id,
            target_account_id=account.id,
            community_id=account.community_id,
            before={"status": AccountStatus.PENDING.value},
            after={"status": new_status.value},
            reason=reason,
        )
        (result.approved if approve else result.rejected).append(account.id)

    db.commit()
    logger.info(
        "Account decisions by %s: %s %s, %s failed",
        actor.id,
        len(result.approved) + len(result.rejected),
        new_status.value,
        len(result.failed),
    )

    for account_id in result.approved + result.rejected:
        notification_service.notify_account_decided(db, account_id, approve, reason)
    return result


def expire_guest_access(db: Session, now: datetime | None = None) -> int:
    """
    Deactivate guest roles whose account expiry has passed.

    Read-time evaluation already treats these accounts as level 0; the
    sweep only makes stored state catch up.

    Returns:
        Number of guest assignments deactivated
    """
    now = now or now_utc()
    rows = (
        db.query(RoleAssignment, Account)
        .join(Account, RoleAssignment.account_id == Account.id)
        .filter(
            RoleAssignment.role == Role.GUEST.value,
            RoleAssignment.is_active.is_(True),
            Account.access_expires_at.isnot(None),
        )
        .all()
    )

    expired = 0
    for assignment, account in rows:
        if not is_past(account.access_expires_at, now):
            continue
        role_service.deactivate_role(db, account.id, Role.GUEST, deactivated_by=None)
        audit_service.append(
            db,
            AuditAction.GUEST_ACCESS_EXPIRED,
            target_account_id=account.id,
            community_id=account.community_id,
            before={"roles": [Role.GUEST.value]},
            after={"roles": [], "access_expires_at": account.access_expires_at},
        )
        expired += 1

    db.commit()
    if expired:
        logger.info("Expired guest access for %s accounts", expired)
    return expired


def bootstrap_role(
    db: Session,
    email: str,
    role: Role,
    display_name: str | None = None,
    community_id: UUID | None = None,
) -> Account:
    """
    Grant a role outside the request workflow (operator CLI only).

    Creates the account when it does not exist yet. A permanent role ends
    any guest access the account holds.
    """
    if role == Role.GUEST:
        raise ValidationError("Guest access is granted through household links")
    normalized = normalize_email(email)
    if not is_valid_email(normalized):
        raise ValidationError("Invalid email")

    account = get_account_by_email(db, normalized)
    if account is None:
        account = Account(
            email=normalized,
            display_name=display_name or normalized.split("@")[0],
            status=AccountStatus.ACTIVE.value,
            community_id=community_id,
        )
        db.add(account)
        db.flush()

    before = authorization_service.get_access_snapshot(db, account.id).as_state()
    role_service.activate_role(db, account.id, role, assigned_by=None)
    ended_guest = role_service.end_guest_access(db, account.id, None)
    after = authorization_service.get_access_snapshot(db, account.id).as_state()
    audit_service.append(
        db,
        AuditAction.ROLE_BOOTSTRAP,
        target_account_id=account.id,
        community_id=account.community_id,
        before=before,
        after={**after, "role": role.value, "ended_guest_access": ended_guest},
    )
    db.commit()
    db.refresh(account)
    logger.info("Bootstrapped role %s for account %s", role.value, account.id)
    return account
