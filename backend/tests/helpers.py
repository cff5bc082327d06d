"""Request helpers shared by the HTTP tests."""

from __future__ import annotations

from fastapi.testclient import TestClient

from backend.config import Settings

TEST_SECRET = "test-signing-secret-with-at-least-32-bytes"


def make_settings(**overrides) -> Settings:
    values = {
        "JWT_SECRET": TEST_SECRET,
        "DATABASE_URL": "sqlite+aiosqlite://",
        "ENVIRONMENT": "test",
        "BCRYPT_ROUNDS": 4,
        "RATE_LIMIT_ENABLED": False,
        "AUTO_CREATE_TABLES": True,
    }
    values.update(overrides)
    return Settings(**values)


def create_user(
    client: TestClient,
    username: str = "testuser",
    password: str = "testpass123",
    role: str = "user",
    email: str | None = None,
) -> int:
    body = {"username": username, "password": password, "role": role}
    if email:
        body["email"] = email
    resp = client.post("/api/create", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["userId"]


def login(client: TestClient, username: str = "testuser", password: str = "testpass123") -> str:
    """Log in and return the session token, leaving the client's cookie jar empty."""
    resp = client.post("/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    token = resp.cookies["token"]
    client.cookies.clear()
    return token


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
