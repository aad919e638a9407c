import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from src.auth import dependencies as auth_dependencies
from src.auth.context import AuthContext
from src.auth.permissions import (
    LEAD_WEBHOOKS_LOGS_READ,
    LEAD_WEBHOOKS_READ,
    LEAD_WEBHOOKS_WRITE,
    normalize_role,
    role_has_permission,
)
from src.config import settings
from src.main import app
from src.routers import lead_webhooks as lead_webhooks_router
from tests.fakes import FakeSupabase


def _token(sub: str = "u-1", audience: str = "authenticated", secret: str | None = None) -> str:
    claims = {"sub": sub, "aud": audience, "exp": int(time.time()) + 3600}
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _profiles(*rows):
    return FakeSupabase({"profiles": list(rows), "lead_webhook_endpoints": []})


def test_auth_context_normalizes_role_and_derives_permissions() -> None:
    auth = AuthContext(organization_id="org-1", user_id="u-1", role=" Tenant_Owner ")

    assert auth.role == "tenant_owner"
    assert LEAD_WEBHOOKS_WRITE in auth.permissions


def test_estimator_reads_but_cannot_write() -> None:
    assert role_has_permission("estimator", LEAD_WEBHOOKS_READ)
    assert role_has_permission("estimator", LEAD_WEBHOOKS_LOGS_READ)
    assert not role_has_permission("estimator", LEAD_WEBHOOKS_WRITE)


@pytest.mark.parametrize("role", ["technician", "viewer"])
def test_field_roles_have_no_lead_webhook_access(role) -> None:
    assert not role_has_permission(role, LEAD_WEBHOOKS_READ)


def test_unknown_role_is_rejected() -> None:
    with pytest.raises(ValueError):
        normalize_role("owner")


def test_valid_session_token_resolves_profile(monkeypatch) -> None:
    fake_db = _profiles({"id": "u-1", "organization_id": "org-1", "email": "a@example.com",
                         "role": "admin", "is_active": True})
    monkeypatch.setattr(auth_dependencies, "supabase", fake_db)
    monkeypatch.setattr(lead_webhooks_router, "supabase", fake_db)

    client = TestClient(app)
    response = client.get("/api/lead-webhooks/", headers={"Authorization": f"Bearer {_token()}"})

    assert response.status_code == 200
    assert response.json() == []


def test_token_with_wrong_signature_or_audience_is_401(monkeypatch) -> None:
    monkeypatch.setattr(auth_dependencies, "supabase", _profiles())
    client = TestClient(app)

    forged = client.get("/api/lead-webhooks/", headers={"Authorization": f"Bearer {_token(secret='nope')}"})
    wrong_aud = client.get("/api/lead-webhooks/", headers={"Authorization": f"Bearer {_token(audience='anon')}"})

    assert forged.status_code == 401
    assert wrong_aud.status_code == 401
    assert forged.json()["detail"] == "Invalid or expired session"


def test_inactive_profile_is_401(monkeypatch) -> None:
    fake_db = _profiles({"id": "u-1", "organization_id": "org-1", "role": "admin", "is_active": False})
    monkeypatch.setattr(auth_dependencies, "supabase", fake_db)

    client = TestClient(app)
    response = client.get("/api/lead-webhooks/", headers={"Authorization": f"Bearer {_token()}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Profile not found or inactive"


def test_profile_without_organization_is_403(monkeypatch) -> None:
    fake_db = _profiles({"id": "u-1", "organization_id": None, "role": "admin", "is_active": True})
    monkeypatch.setattr(auth_dependencies, "supabase", fake_db)

    client = TestClient(app)
    response = client.get("/api/lead-webhooks/", headers={"Authorization": f"Bearer {_token()}"})

    assert response.status_code == 403
    assert response.json()["detail"] == "No organization access"
