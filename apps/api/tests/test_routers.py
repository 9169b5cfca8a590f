"""HTTP tests for the API routers."""
import uuid

import pytest
from httpx import AsyncClient

from gatehouse.db.enums import AuditAction, Role
from gatehouse.db.models import Account, AuditLogEntry, HouseholdLink


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_access_requires_session(client: AsyncClient):
    response = await client.get("/me/access")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_cookie_is_rejected(client: AsyncClient):
    client.cookies.set("gatehouse_session", "not-a-jwt")
    response = await client.get("/me/access")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_revoked_session_is_rejected(client: AsyncClient, db, resident, login):
    login(client, resident)
    resident.token_version += 1
    db.commit()

    response = await client.get("/me/access")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_my_access(client: AsyncClient, resident, login, enable_modules):
    enable_modules("bookings", "cctv")
    login(client, resident)

    response = await client.get("/me/access")

    assert response.status_code == 200
    data = response.json()
    assert data["roles"] == ["resident"]
    assert data["level"] == 1
    assert data["expired"] is False
    assert data["unit"] == "A-12"
    assert "bookings" in data["modules"]


@pytest.mark.asyncio
async def test_account_authorization_needs_admin(client: AsyncClient, resident, admin, login):
    login(client, resident)
    response = await client.get(f"/accounts/{admin.id}/authorization")
    assert response.status_code == 403

    login(client, admin)
    response = await client.get(f"/accounts/{resident.id}/authorization")
    assert response.status_code == 200
    assert response.json()["account_id"] == str(resident.id)


# =============================================================================
# Role requests
# =============================================================================

@pytest.mark.asyncio
async def test_role_request_flow(client: AsyncClient, resident, admin, login):
    login(client, resident)
    response = await client.post(
        "/role-requests",
        json={"requested_role": "community_leader", "justification": "I run the residents' committee"},
    )
    assert response.status_code == 201
    request_id = response.json()["id"]
    assert response.json()["version"] == 1

    login(client, admin)
    queue = await client.get("/role-requests", params={"status": "pending"})
    assert queue.status_code == 200
    assert [item["id"] for item in queue.json()["items"]] == [request_id]

    decided = await client.post(
        f"/role-requests/{request_id}/decision",
        json={"decision": "approved", "version": 1},
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "approved"

    again = await client.post(
        f"/role-requests/{request_id}/decision",
        json={"decision": "approved", "version": 2},
    )
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_state"

    login(client, resident)
    access = await client.get("/me/access")
    assert access.json()["roles"] == ["community_leader", "resident"]
    assert access.json()["level"] == 3


@pytest.mark.asyncio
async def test_stale_version_is_conflict(client: AsyncClient, resident, admin, login):
    login(client, resident)
    created = await client.post(
        "/role-requests",
        json={"requested_role": "community_leader", "justification": "Block rep"},
    )

    login(client, admin)
    response = await client.post(
        f"/role-requests/{created.json()['id']}/decision",
        json={"decision": "rejected", "version": 7},
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "request already decided"


@pytest.mark.asyncio
async def test_resident_cannot_decide(client: AsyncClient, resident, make_account, login):
    other = make_account(Role.RESIDENT)
    login(client, other)
    created = await client.post(
        "/role-requests",
        json={"requested_role": "community_leader", "justification": "Block rep"},
    )

    login(client, resident)
    response = await client.post(
        f"/role-requests/{created.json()['id']}/decision",
        json={"decision": "approved", "version": 1},
    )
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_mutation_without_csrf_header(client: AsyncClient, resident, login):
    login(client, resident)
    response = await client.post(
        "/role-requests",
        json={"requested_role": "community_leader", "justification": "Block rep"},
        headers={"X-Requested-With": ""},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_role_is_422(client: AsyncClient, resident, login):
    login(client, resident)
    response = await client.post(
        "/role-requests",
        json={"requested_role": "overlord", "justification": "Because"},
    )
    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


# =============================================================================
# Households
# =============================================================================

@pytest.mark.asyncio
async def test_household_resident_conflict_payload(
    client: AsyncClient, db, make_account, enable_modules, login
):
    enable_modules("visitor_management")
    primary = make_account(Role.RESIDENT, unit="D-4")
    existing = make_account(Role.RESIDENT, email="existing-resident@example.com", unit="B-2")
    login(client, primary)

    body = {
        "linked": "existing-resident@example.com",
        "relationship_type": "tenant",
        "permissions": {"bookings": True},
        "expires_at": "2031-06-01T00:00:00Z",
    }
    response = await client.post(f"/households/{primary.id}/links", json=body)

    assert response.status_code == 409
    assert response.json() == {
        "error": "conflict",
        "detail": "existing role: resident",
        "existing_role": "resident",
        "account_id": str(existing.id),
        "requires_confirmation": True,
    }
    assert db.query(HouseholdLink).count() == 0

    confirmed = await client.post(
        f"/households/{primary.id}/links", json={**body, "confirmed": True}
    )
    assert confirmed.status_code == 201
    data = confirmed.json()
    assert data["outcome"] == "converted"
    assert data["link"]["permissions"]["bookings"] is True
    assert data["linked_access_expires_at"].startswith("2031-06-01")

    listed = await client.get(f"/households/{primary.id}/links")
    assert [link["id"] for link in listed.json()] == [data["link"]["id"]]

    revoked = await client.delete(f"/households/links/{data['link']['id']}")
    assert revoked.status_code == 200
    assert revoked.json()["is_active"] is False
    assert db.get(Account, existing.id) is not None


@pytest.mark.asyncio
async def test_household_links_private_to_primary(client: AsyncClient, db, resident, make_account, login):
    neighbour = make_account(Role.RESIDENT)
    login(client, neighbour)
    response = await client.get(f"/households/{resident.id}/links")
    assert response.status_code == 403

    entry = db.query(AuditLogEntry).one()
    assert entry.action == AuditAction.ACCESS_DENIED.value
    assert entry.actor_account_id == str(neighbour.id)
    assert entry.target_account_id == str(resident.id)
    assert entry.reason == "not_household_manager"


# =============================================================================
# Modules, accounts, audit, notifications
# =============================================================================

@pytest.mark.asyncio
async def test_module_toggle(client: AsyncClient, admin, community_id, login):
    login(client, admin)
    response = await client.put(
        f"/communities/{community_id}/modules/security", json={"enabled": True}
    )
    assert response.status_code == 200
    assert response.json()["enabled"] is True

    catalog = await client.get(f"/communities/{community_id}/modules")
    enabled = {m["key"] for m in catalog.json() if m["enabled"]}
    assert enabled == {"security"}


@pytest.mark.asyncio
async def test_account_decisions(client: AsyncClient, admin, make_account, login):
    pending = make_account(status="pending")
    missing = uuid.uuid4()
    login(client, admin)

    response = await client.post(
        "/accounts/decisions",
        json={"account_ids": [str(pending.id), str(missing)], "decision": "approved"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["approved"] == [str(pending.id)]
    assert data["failed"] == [{"account_id": str(missing), "error": "not_found"}]


@pytest.mark.asyncio
async def test_audit_endpoints_require_level(
    client: AsyncClient, resident, admin, state_admin, community_id, login
):
    login(client, resident)
    assert (await client.get("/audit")).status_code == 403

    login(client, admin)
    await client.put(f"/communities/{community_id}/modules/events", json={"enabled": True})
    listed = await client.get("/audit", params={"action": "module_toggle"})
    assert listed.status_code == 200
    assert listed.json()["total"] == 1
    assert (await client.get("/audit/verify")).status_code == 403

    login(client, state_admin)
    verify = await client.get("/audit/verify")
    assert verify.status_code == 200
    assert verify.json() == {"valid": True, "broken_entry_id": None}


@pytest.mark.asyncio
async def test_decision_notifies_requester(client: AsyncClient, resident, admin, login):
    login(client, resident)
    created = await client.post(
        "/role-requests",
        json={"requested_role": "community_leader", "justification": "Block rep"},
    )
    login(client, admin)
    await client.post(
        f"/role-requests/{created.json()['id']}/decision",
        json={"decision": "rejected", "version": 1, "reason": "Seat already filled"},
    )

    login(client, resident)
    notifications = await client.get("/me/notifications", params={"unread_only": True})
    assert notifications.status_code == 200
    items = notifications.json()
    assert len(items) == 1

    read = await client.post(f"/me/notifications/{items[0]['id']}/read")
    assert read.status_code == 200
    assert read.json()["read_at"] is not None


@pytest.mark.asyncio
async def test_level_denied_reads_are_audited(client: AsyncClient, db, resident, admin, login):
    login(client, resident)
    assert (await client.get("/audit")).status_code == 403
    assert (await client.get(f"/accounts/{admin.id}/authorization")).status_code == 403

    entries = (
        db.query(AuditLogEntry)
        .filter(AuditLogEntry.action == AuditAction.ACCESS_DENIED.value)
        .order_by(AuditLogEntry.id)
        .all()
    )
    assert [entry.after_state["path"] for entry in entries] == [
        "/audit",
        f"/accounts/{admin.id}/authorization",
    ]
    assert all(entry.actor_account_id == str(resident.id) for entry in entries)
    assert entries[0].reason == "insufficient_level"
    assert entries[0].after_state["required_level"] == 8


@pytest.mark.asyncio
async def test_reading_someone_elses_request_is_audited(
    client: AsyncClient, db, resident, make_account, login
):
    login(client, resident)
    created = await client.post(
        "/role-requests",
        json={"requested_role": "community_leader", "justification": "Block rep"},
    )

    login(client, make_account(Role.RESIDENT))
    response = await client.get(f"/role-requests/{created.json()['id']}")
    assert response.status_code == 403

    entry = db.query(AuditLogEntry).one()
    assert entry.action == AuditAction.ACCESS_DENIED.value
    assert entry.target_id == created.json()["id"]
