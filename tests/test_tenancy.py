from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
import pytest

from originator.api import deps
from originator.core.settings import settings
from originator.core.tenant import is_valid_tenant_id, normalize_tenant_id, resolve_tenant_id, tenant_from_host


@pytest.fixture(autouse=True)
def _base_env(monkeypatch):
    monkeypatch.setattr(settings, "default_tenant_id", "default")
    monkeypatch.setattr(settings, "allowed_tenant_hosts", [])
    yield


def _build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/ctx")
    async def ctx_route(ctx: deps.TenantContext = Depends(deps.get_tenant_context)):
        return {"tenant_id": ctx.tenant_id}

    return app


def test_single_mode_uses_default_tenant(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "single")
    monkeypatch.setattr(settings, "default_tenant_id", "single-tenant")
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"X-Tenant-ID": "ignored"})
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == "single-tenant"


def test_multi_mode_requires_header_or_subdomain(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    client = TestClient(_build_app())
    resp = client.get("/ctx")
    assert resp.status_code == 400
    assert "Tenant resolution failed" in resp.json()["detail"]


def test_multi_mode_normalizes_header(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"X-Tenant-ID": "  Lender-01 "})
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == "lender-01"


def test_multi_mode_rejects_malformed_tenant(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"X-Tenant-ID": "acme corp!"})
    assert resp.status_code == 400


def test_multi_mode_accepts_subdomain(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"host": "acme.example.com"})
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == "acme"


def test_subdomain_outside_allowed_hosts_is_ignored(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    monkeypatch.setattr(settings, "allowed_tenant_hosts", ["acme.example.com"])
    client = TestClient(_build_app())
    resp = client.get("/ctx", headers={"host": "other.example.com"})
    assert resp.status_code == 400


def test_tenant_id_rules():
    assert normalize_tenant_id(" ACME ") == "acme"
    assert is_valid_tenant_id("acme_mx-2")
    assert not is_valid_tenant_id("a")
    assert not is_valid_tenant_id("-acme")
    assert not is_valid_tenant_id(None)
    with pytest.raises(ValueError):
        normalize_tenant_id("x" * 65)


def _request(headers: dict[str, str]):
    from starlette.requests import Request

    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.7", 5000),
    }
    return Request(scope)


def test_rate_limit_key_is_scoped_by_tenant(monkeypatch):
    from originator.core.limiter import tenant_rate_key

    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    assert tenant_rate_key(_request({"X-Tenant-ID": "Acme"})) == "acme:10.0.0.7"
    assert tenant_rate_key(_request({})) == "unresolved:10.0.0.7"

    monkeypatch.setattr(settings, "tenancy_mode", "single")
    assert tenant_rate_key(_request({"X-Tenant-ID": "acme"})) == "default:10.0.0.7"


def test_tenant_from_host():
    assert tenant_from_host("Acme.example.com:8443") == "acme"
    assert tenant_from_host("localhost:8000") is None
    assert tenant_from_host(None) is None
    assert tenant_from_host("acme.example.com", ["ACME.example.com"]) == "acme"
    assert tenant_from_host("other.example.com", ["acme.example.com"]) is None


def test_resolve_tenant_id_prefers_header(monkeypatch):
    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    assert resolve_tenant_id("Lender-01", "acme.example.com") == "lender-01"
    assert resolve_tenant_id(None, "acme.example.com") == "acme"
    assert resolve_tenant_id("bad tenant!", "acme.example.com") is None

    monkeypatch.setattr(settings, "tenancy_mode", "single")
    assert resolve_tenant_id("lender-01", None) == "default"


def test_rate_limit_key_uses_subdomain_tenant(monkeypatch):
    from originator.core.limiter import tenant_rate_key

    monkeypatch.setattr(settings, "tenancy_mode", "multi")
    assert tenant_rate_key(_request({"host": "acme.example.com"})) == "acme:10.0.0.7"
