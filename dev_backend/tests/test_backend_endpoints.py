"""
Tests for the development backend: login, refresh (single-use rotation), /me bearer checks.
"""
import pytest
from fastapi.testclient import TestClient

from dev_backend import tokens as tokens_module
from dev_backend import users as users_module
from dev_backend.main import app
from dev_backend.tokens import issue_access_token, verify_access_token
from dev_backend.users import add_user, authenticate

EMAIL = "admin@example.com"
PASSWORD = "correct horse battery staple"


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def admin():
    return add_user(EMAIL, PASSWORD)


def _login(client) -> dict:
    r = client.post("/api/users/login/", json={"email": EMAIL, "password": PASSWORD})
    assert r.status_code == 200
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("service") == "dev_backend"


def test_login_returns_pair(client, admin):
    data = _login(client)
    assert set(data) == {"access", "refresh"}
    claims = verify_access_token(data["access"])
    assert claims["sub"] == str(admin.id)
    assert claims["exp"] > claims["iat"]


def test_login_email_is_case_insensitive(client, admin):
    r = client.post("/api/users/login/", json={"email": "  ADMIN@example.com", "password": PASSWORD})
    assert r.status_code == 200


def test_login_wrong_password(client, admin):
    r = client.post("/api/users/login/", json={"email": EMAIL, "password": "nope"})
    assert r.status_code == 401
    assert "No active account" in r.json()["detail"]


def test_login_unknown_user(client):
    r = client.post("/api/users/login/", json={"email": "ghost@example.com", "password": "x"})
    assert r.status_code == 401


def test_refresh_rotates_and_burns_old_token(client, admin):
    pair = _login(client)
    r = client.post("/api/users/token/refresh/", json={"refresh": pair["refresh"]})
    assert r.status_code == 200
    data = r.json()
    assert verify_access_token(data["access"])["sub"] == str(admin.id)
    assert data["refresh"] != pair["refresh"]

    replay = client.post("/api/users/token/refresh/", json={"refresh": pair["refresh"]})
    assert replay.status_code == 401
    assert replay.json()["detail"] == "Token is blacklisted"

    r2 = client.post("/api/users/token/refresh/", json={"refresh": data["refresh"]})
    assert r2.status_code == 200


def test_refresh_without_rotation_reuses_token(client, admin, monkeypatch):
    monkeypatch.setattr(tokens_module, "ROTATE_REFRESH_TOKENS", False)
    pair = _login(client)
    for _ in range(2):
        r = client.post("/api/users/token/refresh/", json={"refresh": pair["refresh"]})
        assert r.status_code == 200
        assert "refresh" not in r.json()


def test_refresh_unknown_token(client):
    r = client.post("/api/users/token/refresh/", json={"refresh": "made-up"})
    assert r.status_code == 401


def test_refresh_expired_token(client, admin):
    expired = tokens_module.issue_refresh_token(admin.id, expires_in=-1)
    r = client.post("/api/users/token/refresh/", json={"refresh": expired})
    assert r.status_code == 401
    assert "expired" in r.json()["detail"]


def test_me_requires_bearer(client):
    r = client.get("/api/users/me/")
    assert r.status_code == 401
    assert r.headers.get("www-authenticate") == "Bearer"


def test_me_with_valid_token(client, admin):
    access = _login(client)["access"]
    r = client.get("/api/users/me/", headers={"Authorization": f"Bearer {access}"})
    assert r.status_code == 200
    assert r.json()["email"] == EMAIL


def test_me_with_expired_token(client, admin):
    access = issue_access_token(admin.id, expires_in=-10)
    r = client.get("/api/users/me/", headers={"Authorization": f"Bearer {access}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token is expired"


def test_me_with_garbage_token(client):
    r = client.get("/api/users/me/", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401


def test_seed_from_env(monkeypatch):
    monkeypatch.setattr(users_module, "SEED_EMAIL", "seeded@example.com")
    monkeypatch.setattr(users_module, "SEED_PASSWORD", "seed-pass")
    users_module.seed_from_env()
    assert authenticate("seeded@example.com", "seed-pass") is not None
    assert authenticate("seeded@example.com", "wrong") is None


def test_password_hash_is_not_plaintext():
    hashed = users_module.hash_password("secret")
    assert hashed != "secret"
    assert users_module.verify_password("secret", hashed)
