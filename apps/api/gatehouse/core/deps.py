"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from gatehouse.core.security import decode_session_token
from gatehouse.db.session import SessionLocal

# Cookie and header names
COOKIE_NAME = "gatehouse_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_account(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get authenticated account from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - Account exists and is not rejected/inactive
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    # Import here to avoid circular imports
    import jwt

    from gatehouse.db.enums import AccountStatus
    from gatehouse.db.models import Account
    from gatehouse.schemas.auth import TokenPayload

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, PydanticValidationError):
        raise HTTPException(status_code=401, detail="Invalid session")

    account = db.get(Account, payload.sub)
    if not account:
        raise HTTPException(status_code=401, detail="Account not found")

    if account.status in (AccountStatus.REJECTED.value, AccountStatus.INACTIVE.value):
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if account.token_version != payload.token_version:
        raise HTTPException(status_code=401, detail="Session revoked")

    return account


def require_level(min_level: int | str):
    """
    Dependency factory for level-based authorization.

    The only place the HTTP layer checks privilege; the level comes from
    the evaluator. Pass a settings attribute name (e.g. "MODULE_ADMIN_LEVEL")
    to read the threshold at request time. Refusals are audited.

    Usage:
        @router.get("/audit", dependencies=[Depends(require_level(8))])
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        from gatehouse.core.config import settings
        from gatehouse.db.enums import AuditAction
        from gatehouse.services import audit_service, authorization_service

        account = get_current_account(request, db)
        required = getattr(settings, min_level) if isinstance(min_level, str) else min_level
        snapshot = authorization_service.get_access_snapshot(db, account.id)
        if not authorization_service.authorize(snapshot, required):
            audit_service.record_denied(
                db,
                AuditAction.ACCESS_DENIED,
                actor_account_id=account.id,
                reason="insufficient_level",
                community_id=snapshot.community_id,
                attempted={
                    "method": request.method,
                    "path": request.url.path,
                    "required_level": required,
                },
            )
            raise HTTPException(
                status_code=403,
                detail=f"Level {snapshot.level} not authorized for this action",
            )
        return account
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PUT, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )


def get_provisioner():
    """Account provisioner dependency (overridable in tests)."""
    from gatehouse.services.provisioning_service import get_provisioner as build

    return build()
