"""Role assignment writes shared by the request, household, module and account services.

Nothing here commits; callers own the transaction.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from gatehouse.db.enums import Role
from gatehouse.db.models import Account, RoleAssignment
from gatehouse.utils.timestamps import now_utc


def get_assignment(db: Session, account_id: UUID, role: Role) -> RoleAssignment | None:
    return (
        db.query(RoleAssignment)
        .filter(
            RoleAssignment.account_id == account_id,
            RoleAssignment.role == role.value,
        )
        .first()
    )


def activate_role(
    db: Session,
    account_id: UUID,
    role: Role,
    assigned_by: UUID | None,
) -> RoleAssignment:
    """Grant a role, reactivating the existing row if there is one. Idempotent."""
    assignment = get_assignment(db, account_id, role)
    if assignment is None:
        assignment = RoleAssignment(
            account_id=account_id,
            role=role.value,
            is_active=True,
            assigned_by=assigned_by,
            assigned_at=now_utc(),
        )
        db.add(assignment)
    elif not assignment.is_active:
        assignment.is_active = True
        assignment.assigned_by = assigned_by
        assignment.assigned_at = now_utc()
        assignment.deactivated_by = None
        assignment.deactivated_at = None
    db.flush()
    return assignment


def deactivate_role(
    db: Session,
    account_id: UUID,
    role: Role,
    deactivated_by: UUID | None,
) -> RoleAssignment | None:
    """End a role. Returns None when the account never held it. Idempotent."""
    assignment = get_assignment(db, account_id, role)
    if assignment is None:
        return None
    if assignment.is_active:
        assignment.is_active = False
        assignment.deactivated_by = deactivated_by
        assignment.deactivated_at = now_utc()
        db.flush()
    return assignment


def end_guest_access(db: Session, account_id: UUID, actor_id: UUID | None) -> bool:
    """
    End a guest role superseded by a permanent one; the expiry goes with it.

    Returns:
        True when the account had held the guest role
    """
    assignment = deactivate_role(db, account_id, Role.GUEST, actor_id)
    if assignment is None:
        return False
    account = db.get(Account, account_id)
    account.access_expires_at = None
    db.flush()
    return True
