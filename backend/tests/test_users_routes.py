"""HTTP tests for account creation, login/logout and profile routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from backend.api.rate_limit import limiter
from backend.main import create_app
from backend.models.database import get_db
from backend.models.tables import User
from backend.tests.helpers import bearer, create_user, login, make_settings


class TestCreateAccount:
    def test_creates_user(self, client):
        resp = client.post(
            "/api/create",
            json={"username": "new_user", "password": "password123", "email": "new@test.com", "role": "user"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "User profile created successfully!"
        assert isinstance(body["userId"], int)

    def test_invalid_username_and_missing_password(self, client):
        resp = client.post("/api/create", json={"username": "ab"})
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "ValidationError"
        assert error["message"] == "Validation failed"
        assert set(error["fields"]) == {"username", "password"}

    def test_missing_body(self, client):
        resp = client.post("/api/create")
        assert resp.status_code == 400
        assert set(resp.json()["error"]["fields"]) == {"username", "password"}

    def test_invalid_email(self, client):
        resp = client.post(
            "/api/create", json={"username": "testuser", "password": "password123", "email": "invalid-email"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["fields"] == {"email": "Invalid email format"}

    def test_non_string_password(self, client):
        resp = client.post("/api/create", json={"username": "testuser", "password": 123456})
        assert resp.status_code == 400
        assert resp.json()["error"]["fields"] == {"password": "password must be a string"}

    def test_unknown_role(self, client):
        resp = client.post(
            "/api/create", json={"username": "testuser", "password": "password123", "role": "wizard"}
        )
        assert resp.status_code == 400
        assert "role" in resp.json()["error"]["fields"]

    def test_duplicate_username_conflicts(self, client):
        create_user(client, "testuser", "password123")
        resp = client.post("/api/create", json={"username": "testuser", "password": "password123"})
        assert resp.status_code == 409
        assert resp.json()["error"] == {"message": "Resource already exists", "code": "ConflictError"}

    def test_role_defaults_to_user(self, client):
        create_user(client, "plainuser", "password123", role="")
        token = login(client, "plainuser", "password123")
        resp = client.get("/api/userprofile", headers=bearer(token))
        assert resp.json()["role"] == "user"

    def test_password_is_stored_hashed(self, app, client):
        create_user(client, "hashme", "password123")

        async def fetch():
            async with app.state.session_factory() as session:
                return (await session.execute(select(User.password))).scalar_one()

        stored = client.portal.call(fetch)
        assert stored != "password123"
        assert stored.startswith("$2b$")


class TestLogin:
    def test_login_sets_http_only_cookie(self, client):
        create_user(client, "testuser", "testpass123", email="t@example.com")
        resp = client.post("/login", json={"username": "testuser", "password": "testpass123"})
        assert resp.status_code == 200
        body = resp.json()
        assert body == {
            "id": body["id"],
            "username": "testuser",
            "email": "t@example.com",
            "role": "user",
            "message": "Login successful",
        }
        assert "token" not in body
        set_cookie = resp.headers["set-cookie"].lower()
        assert set_cookie.startswith("token=")
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie
        assert "max-age=3600" in set_cookie

    def test_wrong_password(self, client):
        create_user(client, "testuser", "testpass123")
        resp = client.post("/login", json={"username": "testuser", "password": "wrongpassword"})
        assert resp.status_code == 401
        assert resp.json()["error"] == {
            "message": "Invalid username or password",
            "code": "AuthenticationError",
        }
        assert "set-cookie" not in resp.headers

    def test_repeated_logins_for_existing_user(self, client):
        create_user(client, "testuser", "testpass123")
        bad = client.post("/login", json={"username": "testuser", "password": "nope"})
        good = client.post("/login", json={"username": "testuser", "password": "testpass123"})
        assert bad.status_code == 401
        assert good.status_code == 200
        assert good.json()["username"] == "testuser"

    def test_unknown_user_gets_same_message(self, client):
        resp = client.post("/login", json={"username": "nonexistent", "password": "anypassword"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid username or password"

    @pytest.mark.parametrize("body", [{"password": "testpass123"}, {"username": "testuser"}])
    def test_missing_credentials(self, client, body):
        resp = client.post("/login", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "ValidationError"

    def test_cookie_authenticates_follow_up_requests(self, client):
        create_user(client, "testuser", "testpass123")
        client.post("/login", json={"username": "testuser", "password": "testpass123"})
        resp = client.get("/api/userprofile")
        assert resp.status_code == 200
        assert resp.json()["username"] == "testuser"


class TestLogout:
    def test_logout_clears_cookie(self, client, user_token):
        resp = client.post("/api/logout", headers=bearer(user_token))
        assert resp.status_code == 200
        assert resp.json() == {"message": "Successfully logged out"}
        assert 'token=""' in resp.headers["set-cookie"] or "max-age=0" in resp.headers["set-cookie"].lower()

    def test_logout_requires_token(self, client):
        assert client.post("/api/logout").status_code == 401


class TestUserProfile:
    def test_get_own_profile(self, client, user_token):
        resp = client.get("/api/userprofile", headers=bearer(user_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["username"] == "testuser"
        assert body["email"] == "testuser@example.com"
        assert "password" not in body

    def test_no_token_never_touches_storage(self, app, client):
        calls = []

        async def tracking_db():
            calls.append("opened")
            yield None

        app.dependency_overrides[get_db] = tracking_db
        try:
            resp = client.get("/api/userprofile")
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 401
        assert calls == []

    def test_profile_of_deleted_user_is_404(self, client, user_token, admin_token):
        own_id = client.get("/api/userprofile", headers=bearer(user_token)).json()["id"]
        client.delete(f"/userprofile/{own_id}", headers=bearer(admin_token))
        resp = client.get("/api/userprofile", headers=bearer(user_token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "ResourceNotFoundError"

    def test_update_own_profile(self, client, user_token):
        own_id = client.get("/api/userprofile", headers=bearer(user_token)).json()["id"]
        resp = client.put(
            f"/userprofile/{own_id}", json={"email": "changed@example.com"}, headers=bearer(user_token)
        )
        assert resp.status_code == 200
        profile = client.get("/api/userprofile", headers=bearer(user_token)).json()
        assert profile["email"] == "changed@example.com"
        assert profile["username"] == "testuser"

    def test_cannot_update_someone_else(self, client, user_token):
        other_id = create_user(client, "otheruser", "password123")
        resp = client.put(f"/userprofile/{other_id}", json={"email": "x@y.com"}, headers=bearer(user_token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "AuthorizationError"

    def test_non_admin_cannot_change_role(self, client, user_token):
        own_id = client.get("/api/userprofile", headers=bearer(user_token)).json()["id"]
        resp = client.put(f"/userprofile/{own_id}", json={"role": "admin"}, headers=bearer(user_token))
        assert resp.status_code == 403

    def test_admin_can_update_anyone(self, client, admin_token):
        other_id = create_user(client, "otheruser", "password123")
        resp = client.put(f"/userprofile/{other_id}", json={"role": "artist"}, headers=bearer(admin_token))
        assert resp.status_code == 200

    def test_update_validates_fields(self, client, user_token):
        own_id = client.get("/api/userprofile", headers=bearer(user_token)).json()["id"]
        resp = client.put(f"/userprofile/{own_id}", json={"username": "x!"}, headers=bearer(user_token))
        assert resp.status_code == 400
        assert "username" in resp.json()["error"]["fields"]

    def test_update_to_taken_username_conflicts(self, client, user_token):
        create_user(client, "taken_name", "password123")
        own_id = client.get("/api/userprofile", headers=bearer(user_token)).json()["id"]
        resp = client.put(f"/userprofile/{own_id}", json={"username": "taken_name"}, headers=bearer(user_token))
        assert resp.status_code == 409

    def test_admin_update_missing_user_is_404(self, client, admin_token):
        resp = client.put("/userprofile/9999", json={"email": "x@y.com"}, headers=bearer(admin_token))
        assert resp.status_code == 404


class TestDeleteUser:
    def test_non_admin_forbidden(self, client, user_token):
        other_id = create_user(client, "otheruser", "password123")
        resp = client.delete(f"/userprofile/{other_id}", headers=bearer(user_token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "AuthorizationError"

    def test_admin_deletes_user(self, client, admin_token):
        other_id = create_user(client, "otheruser", "password123")
        resp = client.delete(f"/userprofile/{other_id}", headers=bearer(admin_token))
        assert resp.status_code == 200
        assert resp.json() == {"message": "User profile deleted successfully!"}
        again = client.delete(f"/userprofile/{other_id}", headers=bearer(admin_token))
        assert again.status_code == 404

    def test_admin_cannot_delete_self(self, client, admin_token):
        own_id = client.get("/api/userprofile", headers=bearer(admin_token)).json()["id"]
        resp = client.delete(f"/userprofile/{own_id}", headers=bearer(admin_token))
        assert resp.status_code == 403


@pytest.fixture
def restore_limiter():
    enabled = limiter.enabled
    limiter.reset()
    yield limiter
    limiter.reset()
    limiter.enabled = enabled


class TestRateLimiting:
    def test_app_factory_sets_shared_limiter_switch(self, restore_limiter):
        create_app(make_settings(RATE_LIMIT_ENABLED=True))
        assert restore_limiter.enabled is True
        create_app(make_settings(RATE_LIMIT_ENABLED=False))
        assert restore_limiter.enabled is False

    def test_account_creation_is_rate_limited(self, restore_limiter):
        app = create_app(make_settings(RATE_LIMIT_ENABLED=True))
        with TestClient(app) as client:
            statuses = [client.post("/api/create", json={}).status_code for _ in range(11)]
        assert statuses[:10] == [400] * 10
        assert statuses[10] == 429


def test_health_endpoints(client):
    assert client.get("/ping").json() == {"message": "pong"}
    assert client.get("/").status_code == 200
