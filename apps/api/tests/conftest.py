"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test (app code commits freely)
- Account factory with role assignments and module flag helpers
- HTTPX AsyncClient with session cookie and CSRF header
"""
import os
import uuid
from typing import AsyncGenerator, Generator

# Must be set before the app (and its settings/engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["PROVISIONING_URL"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from gatehouse.core.deps import COOKIE_NAME, get_db
from gatehouse.core.security import create_session_token
from gatehouse.db.base import Base
from gatehouse.db.enums import AccountStatus, Role
from gatehouse.db.models import Account, ModuleFlag, RoleAssignment
from gatehouse.db.session import SessionLocal, engine
from gatehouse.main import app

_SAME_COMMUNITY = object()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Creates all tables, yields a session, drops everything afterwards."""
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def community_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def district_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_account(db: Session, community_id, district_id):
    """Factory: make_account(Role.RESIDENT, email=..., unit=..., expires_at=...)."""

    def _make(
        *roles: Role,
        email: str | None = None,
        unit: str | None = None,
        expires_at=None,
        status: str = AccountStatus.APPROVED.value,
        community=_SAME_COMMUNITY,
        active: bool = True,
    ) -> Account:
        account = Account(
            email=email or f"acct-{uuid.uuid4().hex[:8]}@example.com",
            display_name="Test Account",
            status=status,
            community_id=community_id if community is _SAME_COMMUNITY else community,
            district_id=district_id,
            unit=unit,
            access_expires_at=expires_at,
        )
        db.add(account)
        db.flush()
        for role in roles:
            db.add(RoleAssignment(account_id=account.id, role=role.value, is_active=active))
        db.commit()
        return account

    return _make


@pytest.fixture
def enable_modules(db: Session, community_id):
    """Enable modules for the test community (or another one)."""

    def _enable(*modules: str, community=None) -> None:
        for module in modules:
            db.add(ModuleFlag(
                community_id=community or community_id,
                module_name=module,
                is_enabled=True,
            ))
        db.commit()

    return _enable


@pytest.fixture
def resident(make_account) -> Account:
    return make_account(Role.RESIDENT, unit="A-12")


@pytest.fixture
def admin(make_account) -> Account:
    return make_account(Role.COMMUNITY_ADMIN)


@pytest.fixture
def state_admin(make_account) -> Account:
    return make_account(Role.STATE_ADMIN, community=None)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
def login():
    """login(client, account): point the client's session cookie at account."""

    def _login(client: AsyncClient, account: Account) -> AsyncClient:
        client.cookies.set(COOKIE_NAME, create_session_token(account.id, account.token_version))
        return client

    return _login


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient sharing the test session, with CSRF header, not yet logged in."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()
