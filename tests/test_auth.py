"""
Auth Unit & Integration Tests

Tests cover:
  - Password hashing (bcrypt)
  - JWT token generation / verification / type checks
  - Auth API: register, login, refresh rotation, logout, me, password change
  - User directory search
"""

import jwt
import pytest

from cadence.models import db
from cadence.models.auth import AuthSession
from cadence.services.jwt_service import (
    decode_access_token,
    decode_refresh_token,
    generate_access_token,
    generate_refresh_token,
    hash_token,
)
from cadence.utils.crypto import hash_password, verify_password


PASSWORD = "SecurePass123!"


def _register(client, email="linus@example.com", password=PASSWORD, **extra):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password, **extra})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# ═══════════════════════════════════════════════════════════════
# 1. PASSWORD HASHING
# ═══════════════════════════════════════════════════════════════

class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password(PASSWORD)
        assert hashed.startswith("$2b$")
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("wrong", hashed)

    def test_empty_hash_never_verifies(self):
        assert verify_password(PASSWORD, None) is False
        assert verify_password(PASSWORD, "") is False


# ═══════════════════════════════════════════════════════════════
# 2. JWT TOKENS
# ═══════════════════════════════════════════════════════════════

class TestTokens:
    def test_access_token_payload(self):
        payload = decode_access_token(generate_access_token("u-1", "a@example.com", True))
        assert payload["sub"] == "u-1"
        assert payload["email"] == "a@example.com"
        assert payload["admin"] is True
        assert payload["type"] == "access"

    def test_refresh_token_is_hashed(self):
        raw, token_hash, _ = generate_refresh_token("u-1")
        assert token_hash == hash_token(raw)
        assert decode_refresh_token(raw)["sub"] == "u-1"

    def test_token_type_is_checked(self):
        raw, _, _ = generate_refresh_token("u-1")
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(raw)


# ═══════════════════════════════════════════════════════════════
# 3. AUTH API
# ═══════════════════════════════════════════════════════════════

class TestRegisterAndLogin:
    def test_register_returns_tokens_and_user(self, client):
        res = _register(client, first_name="Linus", last_name="Torvalds")
        assert res.status_code == 201
        body = res.get_json()
        assert body["token_type"] == "Bearer"
        assert body["access_token"] and body["refresh_token"]
        assert body["user"]["email"] == "linus@example.com"
        assert body["user"]["full_name"] == "Linus Torvalds"
        assert AuthSession.query.count() == 1

    def test_register_normalizes_email(self, client):
        res = _register(client, email="Linus@Example.COM")
        assert res.get_json()["user"]["email"] == "linus@example.com"

    def test_duplicate_email(self, client):
        _register(client)
        res = _register(client)
        assert res.status_code == 409

    def test_short_password(self, client):
        res = _register(client, password="short")
        assert res.status_code == 400

    def test_invalid_email(self, client):
        res = _register(client, email="not-an-email")
        assert res.status_code == 400

    def test_missing_fields(self, client):
        res = client.post("/api/v1/auth/register", json={"email": "x@example.com"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_login(self, client):
        _register(client)
        res = client.post("/api/v1/auth/login", json={"email": "LINUS@example.com", "password": PASSWORD})
        assert res.status_code == 200
        assert res.get_json()["user"]["last_login_at"] is not None

    def test_login_wrong_password(self, client):
        _register(client)
        res = client.post("/api/v1/auth/login", json={"email": "linus@example.com", "password": "nope-nope"})
        assert res.status_code == 401

    def test_login_unknown_user(self, client):
        res = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert res.status_code == 401


class TestRefreshAndLogout:
    def test_refresh_rotates_the_session(self, client):
        old = _register(client).get_json()["refresh_token"]
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": old})
        assert res.status_code == 200
        new = res.get_json()["refresh_token"]
        assert new != old

        reuse = client.post("/api/v1/auth/refresh", json={"refresh_token": old})
        assert reuse.status_code == 401
        assert client.post("/api/v1/auth/refresh", json={"refresh_token": new}).status_code == 200

    def test_refresh_rejects_access_token(self, client):
        access = _register(client).get_json()["access_token"]
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": access})
        assert res.status_code == 401

    def test_refresh_requires_token(self, client):
        assert client.post("/api/v1/auth/refresh", json={}).status_code == 400

    def test_logout_revokes_refresh_token(self, client):
        refresh = _register(client).get_json()["refresh_token"]
        res = client.post("/api/v1/auth/logout", json={"refresh_token": refresh})
        assert res.status_code == 200
        assert client.post("/api/v1/auth/refresh", json={"refresh_token": refresh}).status_code == 401

    def test_logout_everywhere(self, client):
        body = _register(client).get_json()
        client.post("/api/v1/auth/login", json={"email": "linus@example.com", "password": PASSWORD})
        client.post("/api/v1/auth/logout", json={}, headers=_bearer(body["access_token"]))
        db.session.expire_all()
        assert AuthSession.query.filter_by(is_active=True).count() == 0


class TestProfile:
    def test_me_requires_auth(self, client):
        res = client.get("/api/v1/auth/me")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_me_with_garbage_token(self, client):
        res = client.get("/api/v1/auth/me", headers=_bearer("garbage"))
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_me(self, client, admin_user, admin_headers):
        res = client.get("/api/v1/auth/me", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["id"] == admin_user.id

    def test_update_names_recomputes_full_name(self, client, admin_headers):
        res = client.put("/api/v1/auth/me", json={"first_name": "Augusta"}, headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["full_name"] == "Augusta Lovelace"

    def test_change_password(self, client):
        access = _register(client).get_json()["access_token"]
        bad = client.put(
            "/api/v1/auth/me",
            json={"password": "NewPass456!", "current_password": "wrong"},
            headers=_bearer(access),
        )
        assert bad.status_code == 403

        ok = client.put(
            "/api/v1/auth/me",
            json={"password": "NewPass456!", "current_password": PASSWORD},
            headers=_bearer(access),
        )
        assert ok.status_code == 200
        login = client.post("/api/v1/auth/login", json={"email": "linus@example.com", "password": "NewPass456!"})
        assert login.status_code == 200


class TestUserDirectory:
    def test_search(self, client, admin_user, member_user, admin_headers):
        res = client.get("/api/v1/users?q=grace", headers=admin_headers)
        assert res.status_code == 200
        assert [u["email"] for u in res.get_json()] == ["grace@example.com"]

    def test_list_all(self, client, admin_user, member_user, admin_headers):
        res = client.get("/api/v1/users", headers=admin_headers)
        assert [u["email"] for u in res.get_json()] == ["ada@example.com", "grace@example.com"]
