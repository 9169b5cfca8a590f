"""Account provisioning - creates accounts for household delegates.

The provisioning call is a single external step the engine cannot roll
back. It returns the new account id or raises ExternalProvisioningError
carrying the reason and whether a retry may succeed.
"""

import logging
from datetime import datetime
from typing import Protocol
from uuid import UUID

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatehouse.core.config import settings
from gatehouse.core.errors import ExternalProvisioningError
from gatehouse.db.enums import AccountStatus, Role
from gatehouse.db.models import Account
from gatehouse.services.http_service import TRANSIENT_STATUSES, RetryPolicy, send_with_retries

logger = logging.getLogger(__name__)


class AccountProvisioner(Protocol):
    def create_account(
        self,
        db: Session,
        *,
        email: str,
        name: str,
        phone: str | None,
        role: Role,
        community_id: UUID | None,
        district_id: UUID | None,
        expiry: datetime | None,
    ) -> UUID: ...


class LocalAccountProvisioner:
    """Creates the account row directly; used when no provisioning service is configured."""

    def create_account(
        self,
        db: Session,
        *,
        email: str,
        name: str,
        phone: str | None,
        role: Role,
        community_id: UUID | None,
        district_id: UUID | None,
        expiry: datetime | None,
    ) -> UUID:
        account = Account(
            email=email,
            display_name=name,
            phone=phone,
            status=AccountStatus.APPROVED.value,
            community_id=community_id,
            district_id=district_id,
            access_expires_at=expiry,
        )
        db.add(account)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ExternalProvisioningError("email already registered") from exc
        logger.info("Provisioned local account %s (role=%s)", account.id, role.value)
        return account.id


class HttpAccountProvisioner:
    """
    Calls the external provisioning service over HTTP with retries.

    retry_statuses are the responses worth another attempt; once attempts
    run out, the same set marks the resulting error as retryable.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        retry_statuses: frozenset[int] | set[int] = TRANSIENT_STATUSES,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retry = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=base_delay,
            retry_statuses=frozenset(retry_statuses),
        )
        self.transport = transport

    def create_account(
        self,
        db: Session,
        *,
        email: str,
        name: str,
        phone: str | None,
        role: Role,
        community_id: UUID | None,
        district_id: UUID | None,
        expiry: datetime | None,
    ) -> UUID:
        payload = {
            "email": email,
            "name": name,
            "phone": phone,
            "role": role.value,
            "community_id": str(community_id) if community_id else None,
            "district_id": str(district_id) if district_id else None,
            "expiry": expiry.isoformat() if expiry else None,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        with httpx.Client(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            try:
                response = send_with_retries(
                    lambda: client.post("/accounts", json=payload, headers=headers), self.retry
                )
            except httpx.RequestError as exc:
                logger.warning("Provisioning service unreachable: %s", type(exc).__name__)
                raise ExternalProvisioningError("provisioning service unreachable", retryable=True) from exc

        if response.status_code >= 400:
            raise ExternalProvisioningError(
                _error_reason(response),
                retryable=self.retry.is_transient(response.status_code),
                status=response.status_code,
            )

        try:
            return UUID(str(response.json()["account_id"]))
        except (ValueError, KeyError, TypeError) as exc:
            raise ExternalProvisioningError("malformed provisioning response") from exc


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


def get_provisioner() -> AccountProvisioner:
    if settings.PROVISIONING_URL:
        return HttpAccountProvisioner(
            settings.PROVISIONING_URL,
            api_key=settings.PROVISIONING_API_KEY,
            timeout=settings.PROVISIONING_TIMEOUT_SECONDS,
            max_attempts=settings.PROVISIONING_MAX_ATTEMPTS,
            retry_statuses=frozenset(settings.PROVISIONING_RETRY_STATUSES),
        )
    return LocalAccountProvisioner()
