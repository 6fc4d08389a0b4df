"""Tests for health endpoints and the error envelope."""
import pytest
from httpx import ASGITransport, AsyncClient

from formweaver.core.config import settings
from formweaver.core.deps import get_db
from formweaver.core.kv_store import get_kv_store
from formweaver.main import app
from formweaver.services import form_service


@pytest.fixture
async def failing_client(db, kv_store, test_account, monkeypatch):
    """Authenticated client whose form listing blows up, with app errors returned as responses."""
    def explode(*args, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(form_service, "list_forms", explode)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: kv_store

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
        headers=test_account.headers,
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["env"] == "test"
    assert "version" in data

    root = await client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient):
    response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}


@pytest.mark.asyncio
async def test_unhandled_error_is_generic_outside_dev(failing_client: AsyncClient):
    response = await failing_client.get("/api/forms")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal Server Error"}


@pytest.mark.asyncio
async def test_unhandled_error_exposes_message_in_dev(failing_client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "ENV", "development")

    response = await failing_client.get("/api/forms")
    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal Server Error"
    assert body["message"] == "database exploded"
