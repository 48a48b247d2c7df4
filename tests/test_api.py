from __future__ import annotations

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from coach.api.server import create_app
from coach.auth.config import load_auth_config
from coach.auth.models import SessionUser
from coach.auth.session import encode_session, session_cookie_name
from coach.authz.catalog import PERMISSION_CATALOG


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, engine) -> TestClient:
    monkeypatch.setenv("AUTH_SESSION_SECRET", "test-secret-key-for-testing-purposes-only")
    monkeypatch.delenv("AUTH_COOKIE_SECURE", raising=False)
    monkeypatch.delenv("AUTH_PUBLIC_BASE_URL", raising=False)
    load_auth_config.cache_clear()
    return TestClient(create_app(engine=engine))


def _login(c: TestClient, role: str, *, user_id: str = "U1", branch_id: Optional[str] = "B1", status: str = "active"):
    cfg = load_auth_config()
    token = encode_session(cfg, SessionUser(id=user_id, role=role, branch_id=branch_id, status=status))
    c.cookies.set(session_cookie_name(cfg), token)


def test_healthz_is_public(client: TestClient) -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_requires_auth_without_www_authenticate(client: TestClient) -> None:
    r = client.get("/api/permissions/me")
    assert r.status_code == 401
    assert "www-authenticate" not in {k.lower() for k in r.headers.keys()}


def test_inactive_user_is_forbidden(client: TestClient) -> None:
    _login(client, "admin", status="suspended")
    r = client.get("/api/auth/me")
    assert r.status_code == 403
    assert r.json()["detail"] == "User account is not active"


def test_auth_me(client: TestClient) -> None:
    _login(client, "manager", user_id="M1")
    r = client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json()["user"]["id"] == "M1"
    assert r.json()["user"]["role"] == "manager"


def test_logout_clears_cookie(client: TestClient) -> None:
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert "coach_session" in r.headers.get("set-cookie", "")


def test_permissions_me(client: TestClient) -> None:
    _login(client, "admin")
    body = client.get("/api/permissions/me").json()
    assert body["role"] == "admin"
    assert body["scope"] == "all"
    assert body["assignable_roles"] == ["trainee", "manager"]
    assert set(body["permissions"]) == set(PERMISSION_CATALOG)
    assert body["permissions"]["users:change_role"] is True
    assert body["permissions"]["billing:manage"] is False


def test_permissions_me_unknown_role_fails_closed(client: TestClient) -> None:
    _login(client, "Admin")
    body = client.get("/api/permissions/me").json()
    assert body["scope"] == "own"
    assert body["assignable_roles"] == []
    assert not any(body["permissions"].values())


def test_catalog_requires_permission(client: TestClient) -> None:
    _login(client, "trainee")
    r = client.get("/api/permissions/catalog")
    assert r.status_code == 403
    assert r.json()["detail"] == "Missing required permission: settings:view"

    _login(client, "admin")
    r = client.get("/api/permissions/catalog")
    assert r.status_code == 200
    assert r.json()["hierarchy"] == ["trainee", "manager", "admin", "super_admin"]
    assert r.json()["permissions"]["users:invite"] == "Invite new users"


def test_scope_endpoint(client: TestClient) -> None:
    _login(client, "manager", branch_id="B1")
    assert client.get("/api/scope/users").json()["filter"] == {"branch_id": "B1"}

    _login(client, "trainee", user_id="U1")
    body = client.get("/api/scope/training_sessions").json()
    assert body["scope"] == "own"
    assert body["filter"] == {"user_id": "U1"}


def test_role_change_requires_admin_role(client: TestClient) -> None:
    _login(client, "manager")
    r = client.post("/api/users/role/validate", json={"target_current_role": "trainee", "role": "trainee"})
    assert r.status_code == 403
    assert r.json()["detail"] == "This action requires one of: admin, super_admin"


def test_role_change_validation(client: TestClient) -> None:
    _login(client, "admin")
    r = client.post("/api/users/role/validate", json={"target_current_role": "manager", "role": "trainee"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "valid": True}

    r = client.post("/api/users/role/validate", json={"target_current_role": "super_admin", "role": "manager"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Cannot modify the role of a user at or above your level"

    r = client.post("/api/users/role/validate", json={"target_current_role": "manager"})
    assert r.status_code == 400


def test_role_change_uses_stored_role(client: TestClient, engine) -> None:
    stored = {"U2": "super_admin", "U3": "manager"}
    c = TestClient(create_app(engine=engine, role_lookup=stored.get))
    _login(c, "admin")

    # The reported role is ignored once a stored role is available.
    r = c.post(
        "/api/users/role/validate",
        json={"target_user_id": "U2", "target_current_role": "trainee", "role": "manager"},
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Cannot modify the role of a user at or above your level"

    r = c.post("/api/users/role/validate", json={"target_user_id": "U3", "role": "trainee"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "valid": True}

    r = c.post("/api/users/role/validate", json={"target_user_id": "nobody", "role": "trainee"})
    assert r.status_code == 404

    r = c.post("/api/users/role/validate", json={"target_current_role": "manager", "role": "trainee"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Target user id required"


def test_invite_validation(client: TestClient) -> None:
    _login(client, "admin")
    r = client.post("/api/users/invite/validate", json={"email": "new@example.com", "role": "manager"})
    assert r.status_code == 200
    inv = r.json()["invitation"]
    assert inv["email"] == "new@example.com"
    assert inv["role"] == "manager"
    assert inv["expires_at"]

    r = client.post("/api/users/invite/validate", json={"email": "new@example.com", "role": "admin"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Cannot invite user with this role"

    r = client.post("/api/users/invite/validate", json={"role": "trainee"})
    assert r.status_code == 400


def test_engine_missing_is_service_unavailable(client: TestClient) -> None:
    client.app.state.policy_engine = None
    _login(client, "admin")
    assert client.get("/api/permissions/me").status_code == 503
