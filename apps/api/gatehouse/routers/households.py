"""Household delegation router."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatehouse.core.config import settings
from gatehouse.core.deps import get_current_account, get_db, get_provisioner, require_csrf_header
from gatehouse.core.errors import AuthorizationError
from gatehouse.db.enums import AuditAction
from gatehouse.db.models import Account
from gatehouse.schemas.household import HouseholdLinkCreate, HouseholdLinkRead, HouseholdLinkResult
from gatehouse.services import audit_service, authorization_service, household_service
from gatehouse.services.provisioning_service import AccountProvisioner

router = APIRouter(prefix="/households", tags=["Households"])


@router.get("/{primary_account_id}/links", response_model=list[HouseholdLinkRead])
def list_household_links(
    primary_account_id: UUID,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """Active links of a primary resident, newest first."""
    if account.id != primary_account_id:
        snapshot = authorization_service.get_access_snapshot(db, account.id)
        if not authorization_service.authorize(snapshot, settings.HOUSEHOLD_ADMIN_LEVEL):
            audit_service.record_denied(
                db,
                AuditAction.ACCESS_DENIED,
                actor_account_id=account.id,
                reason="not_household_manager",
                target_account_id=primary_account_id,
                community_id=snapshot.community_id,
                attempted={"read": "household_links"},
            )
            raise AuthorizationError("Not allowed to view this household")
    return household_service.list_links(db, primary_account_id)


@router.post(
    "/{primary_account_id}/links",
    response_model=HouseholdLinkResult,
    status_code=201,
)
def create_household_link(
    primary_account_id: UUID,
    body: HouseholdLinkCreate,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    provisioner: AccountProvisioner = Depends(get_provisioner),
    _csrf: None = Depends(require_csrf_header),
):
    """
    Link a tenant or family member.

    A 409 with requires_confirmation=true means the target is a resident;
    repeat with confirmed=true to convert them into a guest delegate.
    """
    result = household_service.create_link(
        db,
        actor=account,
        primary_account_id=primary_account_id,
        linked=body.linked,
        relationship_type=body.relationship_type,
        permissions=body.permissions,
        expires_at=body.expires_at,
        confirmed=body.confirmed,
        display_name=body.display_name,
        phone=body.phone,
        provisioner=provisioner,
    )
    return HouseholdLinkResult(
        link=HouseholdLinkRead.model_validate(result.link),
        outcome=result.outcome,
        provisioned=result.provisioned,
        linked_access_expires_at=result.linked_account.access_expires_at,
    )


@router.delete("/links/{link_id}", response_model=HouseholdLinkRead)
def revoke_household_link(
    link_id: UUID,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    """Soft-delete a link; the delegate account is kept."""
    return household_service.revoke_link(db, link_id, account)
