"""Household delegation - links primary residents to delegate accounts.

A link gives the delegate module-scoped access under the primary's unit,
never an elevated role. Delegates hold the time-bounded guest role.

Linking an account that currently holds an active resident role is a
two-call protocol: the first call (confirmed=False) is a dry run that
raises ConflictError with structured detail and changes nothing; the
confirmed call converts the resident into a guest delegate in one
transaction. Every conversion step is idempotent, and a failing step is
reported by name so the caller can re-invoke with the same inputs.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from gatehouse.core.config import settings
from gatehouse.core.errors import (
    AuthorizationError,
    ConflictError,
    HouseholdStepError,
    ModuleDisabledError,
    NotFoundError,
    ValidationError,
)
from gatehouse.core.modules import DEFAULT_HOUSEHOLD_PERMISSIONS, delegable_modules, gating_module
from gatehouse.core.structured_logging import build_log_context
from gatehouse.db.enums import AccountStatus, AuditAction, ConversionStep, RelationshipType, Role
from gatehouse.db.models import Account, HouseholdLink
from gatehouse.services import (
    audit_service,
    authorization_service,
    notification_service,
    role_service,
)
from gatehouse.services.authorization_service import AccessSnapshot
from gatehouse.services.provisioning_service import AccountProvisioner, get_provisioner
from gatehouse.utils.normalization import is_valid_email, normalize_email
from gatehouse.utils.timestamps import ensure_utc, now_utc

logger = logging.getLogger(__name__)


@dataclass
class LinkResult:
    link: HouseholdLink
    linked_account: Account
    outcome: str  # created | reactivated | updated | converted
    provisioned: bool = False


# =============================================================================
# Input validation (runs before any mutation)
# =============================================================================


def _parse_relationship(value: str) -> RelationshipType:
    try:
        return RelationshipType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid relationship type: {value}",
            allowed=[r.value for r in RelationshipType],
        )


def _merge_permissions(permissions: dict[str, Any] | None) -> dict[str, bool]:
    allowed = delegable_modules()
    merged = dict(DEFAULT_HOUSEHOLD_PERMISSIONS)
    for key, value in (permissions or {}).items():
        if key not in allowed:
            raise ValidationError(f"Module cannot be delegated: {key}", module=key)
        if not isinstance(value, bool):
            raise ValidationError(f"Permission for {key} must be true or false", module=key)
        merged[key] = value
    return merged


def _resolve_expiry(expires_at: datetime | None) -> datetime:
    now = now_utc()
    if expires_at is None:
        return now + timedelta(days=settings.GUEST_DEFAULT_ACCESS_DAYS)
    expires_at = ensure_utc(expires_at)
    if expires_at <= now:
        raise ValidationError("Access expiry must be in the future")
    return expires_at


def _parse_target(linked: str | UUID) -> tuple[UUID | None, str | None]:
    """Split the target into (account id, normalized email)."""
    if isinstance(linked, UUID):
        return linked, None
    value = (linked or "").strip()
    try:
        return UUID(value), None
    except ValueError:
        pass
    email = normalize_email(value)
    if not is_valid_email(email):
        raise ValidationError("Linked account must be an account id or a valid email")
    return None, email


def _may_manage(actor: AccessSnapshot, primary: AccessSnapshot) -> bool:
    """The primary itself, or a household admin (community admins only in their community)."""
    if actor.account_id == primary.account_id:
        return not actor.expired
    if not authorization_service.authorize(actor, settings.HOUSEHOLD_ADMIN_LEVEL):
        return False
    return actor.level > settings.HOUSEHOLD_ADMIN_LEVEL or actor.community_id == primary.community_id


def _link_state(link: HouseholdLink | None) -> dict | None:
    if link is None:
        return None
    return {
        "link_id": str(link.id),
        "is_active": link.is_active,
        "relationship_type": link.relationship_type,
        "permissions": dict(link.permissions or {}),
    }


# =============================================================================
# Idempotent steps
# =============================================================================


def _run_step(db: Session, step: ConversionStep, record_id: Any, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Household step %s failed for record %s", step.value, record_id, exc_info=exc
        )
        raise HouseholdStepError(step.value, record_id, type(exc).__name__) from exc


def _deactivate_resident(db: Session, account: Account, actor_id: UUID) -> None:
    role_service.deactivate_role(db, account.id, Role.RESIDENT, actor_id)


def _activate_guest(db: Session, account: Account, expiry: datetime, actor_id: UUID) -> None:
    role_service.activate_role(db, account.id, Role.GUEST, assigned_by=actor_id)
    account.access_expires_at = expiry
    db.flush()


def _copy_scope(db: Session, account: Account, primary: Account) -> None:
    account.unit = primary.unit
    account.community_id = primary.community_id
    account.district_id = primary.district_id
    db.flush()


def _get_pair(db: Session, primary_id: UUID, linked_id: UUID) -> HouseholdLink | None:
    return (
        db.query(HouseholdLink)
        .filter(
            HouseholdLink.primary_account_id == primary_id,
            HouseholdLink.linked_account_id == linked_id,
        )
        .first()
    )


def _upsert_link(
    db: Session,
    primary_id: UUID,
    linked_id: UUID,
    relationship: RelationshipType,
    permissions: dict[str, bool],
    actor_id: UUID,
) -> HouseholdLink:
    """One row per pair: reactivate/update an existing row, insert otherwise."""
    link = _get_pair(db, primary_id, linked_id)
    if link is None:
        link = HouseholdLink(
            primary_account_id=primary_id,
            linked_account_id=linked_id,
            relationship_type=relationship.value,
            permissions=permissions,
            is_active=True,
            created_by=actor_id,
        )
        db.add(link)
    else:
        link.relationship_type = relationship.value
        link.permissions = permissions
        link.is_active = True
        link.revoked_at = None
        link.revoked_by = None
    db.flush()
    return link


# =============================================================================
# Operations
# =============================================================================


def create_link(
    db: Session,
    actor: Account,
    primary_account_id: UUID,
    linked: str | UUID,
    relationship_type: str,
    permissions: dict[str, Any] | None = None,
    expires_at: datetime | None = None,
    confirmed: bool = False,
    display_name: str | None = None,
    phone: str | None = None,
    provisioner: AccountProvisioner | None = None,
) -> LinkResult:
    """
    Link a delegate (by email or account id) to a primary resident.

    Outcomes by the delegate's current state:
    - unknown email: provisioned as a guest, then linked
    - no active role or guest: guest role (re)activated with the expiry
    - resident: ConflictError unless confirmed, then converted to guest
    - staff: linked without any role change

    Raises:
        ValidationError: Bad relationship, permissions, expiry, target or primary
        NotFoundError: Unknown primary or linked account id
        AuthorizationError: Actor may not manage this household (audited)
        ModuleDisabledError: Guest access disabled for the community (audited)
        ConflictError: Target holds a resident role and confirmed is False
        ExternalProvisioningError: Account creation failed; nothing linked
        HouseholdStepError: A step failed; retry with the same inputs
    """
    relationship = _parse_relationship(relationship_type)
    merged_permissions = _merge_permissions(permissions)
    expiry = _resolve_expiry(expires_at)
    target_id, target_email = _parse_target(linked)

    primary_snapshot = authorization_service.get_access_snapshot(db, primary_account_id)
    actor_snapshot = authorization_service.get_access_snapshot(db, actor.id)
    attempted = {
        "relationship_type": relationship.value,
        "permissions": merged_permissions,
        "linked": str(target_id) if target_id else audit_service.hash_email(target_email),
    }

    if not _may_manage(actor_snapshot, primary_snapshot):
        audit_service.record_denied(
            db,
            AuditAction.HOUSEHOLD_LINK_DENIED,
            actor_account_id=actor.id,
            reason="not_household_manager",
            target_account_id=primary_account_id,
            community_id=primary_snapshot.community_id,
            attempted=attempted,
        )
        raise AuthorizationError("Not allowed to manage this household")

    if not authorization_service.has_role(primary_snapshot, Role.RESIDENT):
        raise ValidationError("Primary account must hold an active resident role")

    if not authorization_service.can_assign_role(db, Role.GUEST, primary_snapshot.community_id):
        audit_service.record_denied(
            db,
            AuditAction.HOUSEHOLD_LINK_DENIED,
            actor_account_id=actor.id,
            reason="module_disabled",
            target_account_id=primary_account_id,
            community_id=primary_snapshot.community_id,
            attempted=attempted,
        )
        raise ModuleDisabledError(
            "Guest access is not enabled for this community",
            role=Role.GUEST.value,
            module=gating_module(Role.GUEST),
        )

    if target_id is not None:
        linked_account = db.get(Account, target_id)
        if linked_account is None:
            raise NotFoundError("Linked account not found", account_id=str(target_id))
    else:
        linked_account = db.query(Account).filter(Account.email == target_email).first()
        if linked_account is None and not (display_name or "").strip():
            raise ValidationError("display_name is required to create a new account")

    if linked_account is not None and linked_account.id == primary_account_id:
        raise ValidationError("An account cannot be linked to itself")

    primary = db.get(Account, primary_account_id)
    provisioned = False

    if linked_account is None:
        provisioner = provisioner or get_provisioner()
        new_id = provisioner.create_account(
            db,
            email=target_email,
            name=display_name.strip(),
            phone=phone,
            role=Role.GUEST,
            community_id=primary.community_id,
            district_id=primary.district_id,
            expiry=expiry,
        )
        linked_account = db.get(Account, new_id)
        if linked_account is None:
            # Remote provisioning: mirror the new identity locally. Committed on
            # its own so a retry after a failed step finds it by email instead
            # of provisioning the same address twice.
            linked_account = Account(
                id=new_id,
                email=target_email,
                display_name=display_name.strip(),
                phone=phone,
                status=AccountStatus.APPROVED.value,
                community_id=primary.community_id,
                district_id=primary.district_id,
            )
            db.add(linked_account)
            db.commit()
            db.refresh(linked_account)
        provisioned = True
        logger.info("Provisioned delegate account %s", new_id)

    linked_snapshot = authorization_service.get_access_snapshot(db, linked_account.id)
    existing_link = _get_pair(db, primary_account_id, linked_account.id)
    before = {**linked_snapshot.as_state(), "link": _link_state(existing_link)}

    is_resident = Role.RESIDENT in linked_snapshot.roles
    if is_resident and not confirmed:
        raise ConflictError(
            "existing role: resident",
            existing_role=Role.RESIDENT.value,
            account_id=str(linked_account.id),
            requires_confirmation=True,
        )

    account_id = linked_account.id
    if is_resident:
        _run_step(db, ConversionStep.DEACTIVATE_RESIDENT, account_id,
                  lambda: _deactivate_resident(db, linked_account, actor.id))
    if not authorization_service.is_staff(linked_snapshot):
        _run_step(db, ConversionStep.ACTIVATE_GUEST, account_id,
                  lambda: _activate_guest(db, linked_account, expiry, actor.id))
        _run_step(db, ConversionStep.COPY_SCOPE, account_id,
                  lambda: _copy_scope(db, linked_account, primary))
    link = _run_step(
        db,
        ConversionStep.UPSERT_LINK,
        existing_link.id if existing_link else account_id,
        lambda: _upsert_link(
            db, primary_account_id, account_id, relationship, merged_permissions, actor.id
        ),
    )

    if is_resident:
        outcome, action = "converted", AuditAction.HOUSEHOLD_CONVERSION
    elif existing_link is None:
        outcome, action = "created", AuditAction.HOUSEHOLD_LINK_CREATE
    elif before["link"]["is_active"]:
        outcome, action = "updated", AuditAction.HOUSEHOLD_LINK_UPDATE
    else:
        outcome, action = "reactivated", AuditAction.HOUSEHOLD_LINK_REACTIVATE

    after_snapshot = authorization_service.get_access_snapshot(db, account_id)
    audit_service.append(
        db,
        action,
        actor_account_id=actor.id,
        target_account_id=account_id,
        target_type="household_link",
        target_id=link.id,
        community_id=primary.community_id,
        before=before,
        after={
            **after_snapshot.as_state(),
            "link": _link_state(link),
            "access_expires_at": after_snapshot.access_expires_at,
            "provisioned": provisioned,
        },
    )
    db.commit()
    db.refresh(link)
    db.refresh(linked_account)

    logger.info(
        "Household link %s %s",
        outcome,
        build_log_context(
            actor_id=actor.id, target_id=link.id, community_id=primary.community_id, action=action.value
        ),
    )
    notification_service.notify_household_linked(db, link)
    return LinkResult(link=link, linked_account=linked_account, outcome=outcome, provisioned=provisioned)


def get_link(db: Session, link_id: UUID) -> HouseholdLink:
    link = db.get(HouseholdLink, link_id)
    if link is None:
        raise NotFoundError("Household link not found", link_id=str(link_id))
    return link


def revoke_link(db: Session, link_id: UUID, actor: Account) -> HouseholdLink:
    """
    Soft-delete a link. The delegate account itself is never deleted.

    Revoking an already inactive link is a no-op.

    Raises:
        NotFoundError: Unknown link
        AuthorizationError: Actor may not manage this household (audited)
    """
    link = get_link(db, link_id)
    primary_snapshot = authorization_service.get_access_snapshot(db, link.primary_account_id)
    actor_snapshot = authorization_service.get_access_snapshot(db, actor.id)
    if not _may_manage(actor_snapshot, primary_snapshot):
        audit_service.record_denied(
            db,
            AuditAction.HOUSEHOLD_LINK_DENIED,
            actor_account_id=actor.id,
            reason="not_household_manager",
            target_account_id=link.linked_account_id,
            target_type="household_link",
            target_id=link.id,
            community_id=primary_snapshot.community_id,
            attempted={"revoke": True},
        )
        raise AuthorizationError("Not allowed to manage this household")

    if not link.is_active:
        return link

    before = _link_state(link)
    link.is_active = False
    link.revoked_at = now_utc()
    link.revoked_by = actor.id
    db.flush()

    audit_service.append(
        db,
        AuditAction.HOUSEHOLD_LINK_REVOKE,
        actor_account_id=actor.id,
        target_account_id=link.linked_account_id,
        target_type="household_link",
        target_id=link.id,
        community_id=primary_snapshot.community_id,
        before=before,
        after=_link_state(link),
    )
    db.commit()
    db.refresh(link)

    logger.info("Household link %s revoked by %s", link.id, actor.id)
    notification_service.notify_household_revoked(db, link)
    return link


def list_links(db: Session, primary_account_id: UUID) -> list[HouseholdLink]:
    """Active links of a primary, most recently created first."""
    if db.get(Account, primary_account_id) is None:
        raise NotFoundError("Account not found", account_id=str(primary_account_id))
    return (
        db.query(HouseholdLink)
        .filter(
            HouseholdLink.primary_account_id == primary_account_id,
            HouseholdLink.is_active.is_(True),
        )
        .order_by(HouseholdLink.created_at.desc(), HouseholdLink.id.desc())
        .all()
    )


def repair_household_scoping(db: Session, actor_id: UUID | None = None) -> int:
    """
    Backfill unit/community/district on active tenant delegates missing a unit.

    Returns:
        Number of accounts repaired
    """
    Linked = aliased(Account)
    Primary = aliased(Account)
    rows = (
        db.query(Linked, Primary)
        .join(HouseholdLink, HouseholdLink.linked_account_id == Linked.id)
        .join(Primary, HouseholdLink.primary_account_id == Primary.id)
        .filter(
            HouseholdLink.is_active.is_(True),
            HouseholdLink.relationship_type == RelationshipType.TENANT.value,
            Linked.unit.is_(None),
            Primary.unit.isnot(None),
        )
        .all()
    )

    repaired = 0
    for linked, primary in rows:
        if linked.unit is not None:
            # Same delegate under several primaries: first one wins
            continue
        before = {"unit": linked.unit, "community_id": linked.community_id}
        _copy_scope(db, linked, primary)
        audit_service.append(
            db,
            AuditAction.HOUSEHOLD_SCOPE_REPAIR,
            actor_account_id=actor_id,
            target_account_id=linked.id,
            community_id=primary.community_id,
            before=before,
            after={"unit": linked.unit, "community_id": linked.community_id},
        )
        repaired += 1

    db.commit()
    if repaired:
        logger.info("Repaired household scoping for %s accounts", repaired)
    return repaired
