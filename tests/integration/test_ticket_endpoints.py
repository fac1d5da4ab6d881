"""
End-to-end tests for the ticket, context and health endpoints.

Requests run through the full application: TenantContextMiddleware resolves
the identity from a signed JWT (or legacy headers), the routers call the
tenant-aware service, and the repository queries an in-memory SQLite database.
"""

import os
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from main import create_app
from services.database import get_session


@pytest.fixture
def client():
    """TestClient whose get_session dependency is backed by in-memory SQLite."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    tables_created = []

    async def override_get_session():
        if not tables_created:
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            tables_created.append(True)
        async with session_maker() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth(make_token):
    """Build Authorization headers for a tenant/user/roles triple."""
    def build(tenant_id: str, user_id: str = "u1", roles: str = "USER") -> dict:
        token = make_token(tenant_id=tenant_id, user_id=user_id, roles=roles)
        return {"Authorization": f"Bearer {token}"}
    return build


class TestHealth:

    def test_health_needs_no_credentials(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["jwt_auth_configured"] is True
        assert body["tenant_context_set"] is False
        assert "X-Tenant-ID" not in response.headers


class TestTenantResolution:

    def test_missing_identity_rejected(self, client):
        response = client.get("/tickets")

        assert response.status_code == 400
        assert response.json() == {
            "detail": "Unable to resolve tenant context",
            "code": "TENANT_NOT_FOUND",
        }

    def test_invalid_token_rejected(self, client):
        response = client.get("/tickets", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 400
        assert response.json()["code"] == "TENANT_INVALID_TOKEN"

    def test_expired_token_rejected(self, client, make_token):
        token = make_token(tenant_id="acme", exp_offset=-60)

        response = client.get("/tickets", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 400
        assert response.json()["code"] == "TENANT_INVALID_TOKEN"

    def test_response_echoes_tenant(self, client, auth):
        response = client.get("/tickets/count", headers=auth("acme"))

        assert response.status_code == 200
        assert response.headers["X-Tenant-ID"] == "acme"
        assert response.json() == {"tenant_id": "acme", "count": 0}


class TestContextEndpoint:

    def test_jwt_identity_is_authenticated(self, client, make_token):
        token = make_token(tenant_id="acme", user_id="u1", roles="ADMIN,AGENT", email="u1@acme.test")

        response = client.get("/context/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        body = response.json()
        assert body["tenant_id"] == "acme"
        assert body["user_id"] == "u1"
        assert body["roles"] == ["ADMIN", "AGENT"]
        assert body["email"] == "u1@acme.test"
        assert body["authenticated"] is True
        assert body["valid"] is True
        assert body["is_admin"] is True
        assert body["is_agent"] is True

    def test_legacy_headers_when_enabled(self, client):
        headers = {"X-Tenant-ID": "acme", "X-User-ID": "u1", "X-User-Roles": "ADMIN,AGENT"}

        with patch.dict(os.environ, {"ALLOW_LEGACY_HEADER_AUTH": "true"}):
            response = client.get("/context/me", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["tenant_id"] == "acme"
        assert body["is_admin"] is True
        assert body["is_agent"] is True
        assert body["authenticated"] is False

    def test_acme_headers_accepted_with_default_config(self, client, monkeypatch):
        monkeypatch.delenv("ALLOW_LEGACY_HEADER_AUTH", raising=False)
        headers = {"X-Tenant-ID": "acme", "X-User-ID": "u1", "X-User-Roles": "ADMIN,AGENT"}

        me = client.get("/context/me", headers=headers)
        own = client.get("/context/access/acme", headers=headers)
        other = client.get("/context/access/other", headers=headers)

        assert me.status_code == 200
        assert me.json()["is_admin"] is True
        assert me.json()["is_agent"] is True
        assert me.headers["X-Tenant-ID"] == "acme"
        assert own.json()["allowed"] is True
        assert other.json()["allowed"] is False

    def test_legacy_headers_ignored_when_disabled(self, client):
        with patch.dict(os.environ, {"ALLOW_LEGACY_HEADER_AUTH": "false"}):
            response = client.get("/context/me", headers={"X-Tenant-ID": "acme"})

        assert response.status_code == 400

    def test_access_check(self, client, auth):
        headers = auth("acme")

        own = client.get("/context/access/acme", headers=headers).json()
        other = client.get("/context/access/globex", headers=headers).json()

        assert own["allowed"] is True
        assert other["allowed"] is False


class TestTickets:

    def test_create_stamps_tenant_and_reporter(self, client, auth):
        response = client.post(
            "/tickets",
            json={"title": "  Printer on fire  ", "priority": "HIGH"},
            headers=auth("acme", user_id="reporter-1"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["tenant_id"] == "acme"
        assert body["reporter_id"] == "reporter-1"
        assert body["title"] == "Printer on fire"
        assert body["priority"] == "HIGH"
        assert body["status"] == "OPEN"
        assert body["ticket_number"] == "TCK-000001"

    def test_tenant_in_body_is_ignored(self, client, auth):
        response = client.post(
            "/tickets",
            json={"title": "Hello", "tenant_id": "globex"},
            headers=auth("acme"),
        )

        assert response.status_code == 201
        assert response.json()["tenant_id"] == "acme"

    def test_blank_title_rejected(self, client, auth):
        response = client.post("/tickets", json={"title": "   "}, headers=auth("acme"))

        assert response.status_code == 422

    def test_get_own_ticket(self, client, auth):
        created = client.post("/tickets", json={"title": "Mine"}, headers=auth("acme")).json()

        response = client.get(f"/tickets/{created['id']}", headers=auth("acme"))

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_cross_tenant_get_looks_like_missing(self, client, auth):
        created = client.post("/tickets", json={"title": "Secret"}, headers=auth("acme")).json()

        foreign = client.get(f"/tickets/{created['id']}", headers=auth("globex"))
        missing = client.get(f"/tickets/{uuid4()}", headers=auth("globex"))

        assert foreign.status_code == 404
        assert missing.status_code == 404
        assert foreign.json()["code"] == missing.json()["code"] == "ENTITY_NOT_FOUND"
        assert foreign.json()["detail"] == f"TicketModel not found: {created['id']}"

    def test_lookup_by_number_is_scoped(self, client, auth):
        client.post("/tickets", json={"title": "acme ticket"}, headers=auth("acme"))
        client.post("/tickets", json={"title": "globex ticket"}, headers=auth("globex"))

        acme = client.get("/tickets/by-number/TCK-000001", headers=auth("acme"))
        globex = client.get("/tickets/by-number/TCK-000001", headers=auth("globex"))
        initech = client.get("/tickets/by-number/TCK-000001", headers=auth("initech"))

        assert acme.json()["title"] == "acme ticket"
        assert globex.json()["title"] == "globex ticket"
        assert initech.status_code == 404

    def test_list_only_shows_own_tickets(self, client, auth):
        for i in range(3):
            client.post("/tickets", json={"title": f"acme {i}"}, headers=auth("acme"))
        client.post("/tickets", json={"title": "globex 0"}, headers=auth("globex"))

        response = client.get("/tickets", params={"page": 0, "size": 2}, headers=auth("acme"))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["size"] == 2
        assert body["total_pages"] == 2
        assert [t["title"] for t in body["items"]] == ["acme 0", "acme 1"]
        assert {t["tenant_id"] for t in body["items"]} == {"acme"}

    def test_page_size_is_capped(self, client, auth):
        with patch.dict(os.environ, {"MAX_PAGE_SIZE": "5"}):
            response = client.get("/tickets", params={"size": 500}, headers=auth("acme"))

        assert response.status_code == 200
        assert response.json()["size"] == 5


class TestDeleteTicket:

    def test_delete_requires_agent_or_admin(self, client, auth):
        created = client.post("/tickets", json={"title": "Keep"}, headers=auth("acme")).json()

        response = client.delete(f"/tickets/{created['id']}", headers=auth("acme", roles="USER"))

        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied", "code": "TENANT_ACCESS_DENIED"}
        assert client.get(f"/tickets/{created['id']}", headers=auth("acme")).status_code == 200

    def test_agent_deletes_own_ticket(self, client, auth):
        created = client.post("/tickets", json={"title": "Done"}, headers=auth("acme")).json()

        response = client.delete(f"/tickets/{created['id']}", headers=auth("acme", roles="AGENT"))

        assert response.status_code == 204
        assert client.get(f"/tickets/{created['id']}", headers=auth("acme")).status_code == 404

    def test_cross_tenant_delete_is_noop(self, client, auth):
        created = client.post("/tickets", json={"title": "Not yours"}, headers=auth("acme")).json()

        response = client.delete(
            f"/tickets/{created['id']}",
            headers=auth("globex", roles="ADMIN"),
        )

        assert response.status_code == 204
        still_there = client.get(f"/tickets/{created['id']}", headers=auth("acme"))
        assert still_there.status_code == 200
        assert still_there.json()["title"] == "Not yours"
