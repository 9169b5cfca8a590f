"""Security utilities for JWT session tokens.

The identity provider authenticates the caller upstream; the session token
carries the resulting account id, which the engine trusts without re-verification.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from gatehouse.core.config import settings


def create_session_token(account_id: UUID, token_version: int) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains account identity and revocation version.
    """
    payload = {
        "sub": str(account_id),
        "token_version": token_version,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore
