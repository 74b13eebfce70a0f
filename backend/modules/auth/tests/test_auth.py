"""
Tests for login, token refresh, logout and request authentication.
"""

from datetime import timedelta

import pytest
from jose import jwt

from core.auth import (
    InvalidTokenError,
    TokenExpiredError,
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from core.config import settings
from modules.audit.models.audit_models import AuditLog
from modules.users.models.user_models import UserStatus

TEST_PASSWORD = "Secret123!"


def _expired_token(user):
    return create_access_token(
        {"userId": user.id, "username": user.username, "role": user.role},
        expires_delta=timedelta(seconds=-10),
    )


class TestTokens:
    def test_token_round_trip(self):
        token = create_access_token({"userId": 5, "username": "analyst", "role": "user"})
        data = decode_token(token)
        assert data.user_id == 5
        assert data.username == "analyst"
        assert data.role == "user"

    def test_expiry_is_configured_hours(self):
        token = create_access_token({"userId": 1})
        claims = jwt.get_unverified_claims(token)
        assert claims["exp"] - claims["iat"] == settings.jwt_expire_hours * 3600

    def test_expired_token(self):
        token = create_access_token({"userId": 1}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenExpiredError):
            decode_token(token)

    def test_tampered_or_incomplete_tokens(self):
        foreign = jwt.encode({"userId": 1}, "another-secret", algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            decode_token(foreign)
        with pytest.raises(InvalidTokenError):
            decode_token(create_access_token({"username": "nobody"}))
        with pytest.raises(InvalidTokenError):
            decode_token("not-a-jwt")

    def test_password_hashing(self):
        hashed = get_password_hash("Secret123!")
        assert hashed != "Secret123!"
        assert verify_password("Secret123!", hashed)
        assert not verify_password("wrong", hashed)
        assert not verify_password("Secret123!", "not-a-bcrypt-hash")


class TestLogin:
    """POST /api/auth/login"""

    def test_login_success(self, client, db_session, regular_user):
        response = client.post(
            "/api/auth/login", json={"username": "analyst", "password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"] == {"id": regular_user.id, "username": "analyst", "role": "user"}
        assert body["expiresIn"] == f"{settings.jwt_expire_hours}h"
        assert decode_token(body["token"]).user_id == regular_user.id

        entry = db_session.query(AuditLog).filter(AuditLog.action_type == "login").one()
        assert entry.user_id == regular_user.id
        assert entry.new_values == {"username": "analyst"}

    def test_username_is_trimmed(self, client, regular_user):
        response = client.post(
            "/api/auth/login", json={"username": "  analyst ", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200

    def test_wrong_password(self, client, regular_user):
        response = client.post(
            "/api/auth/login", json={"username": "analyst", "password": "not-the-password"}
        )
        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_CREDENTIALS"

    def test_unknown_user_gets_same_error(self, client):
        response = client.post(
            "/api/auth/login", json={"username": "ghost", "password": "whatever1"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({}, "Username and password are required"),
            ({"username": "ab", "password": "secret12"}, "Username must be at least 3 characters"),
            ({"username": "analyst", "password": "123"}, "Password must be at least 6 characters"),
        ],
    )
    def test_input_validation(self, client, payload, message):
        response = client.post("/api/auth/login", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == message

    def test_deactivated_account(self, client, make_user):
        make_user("former", status=UserStatus.INACTIVE.value)
        response = client.post(
            "/api/auth/login", json={"username": "former", "password": TEST_PASSWORD}
        )
        assert response.status_code == 403
        assert response.json()["error_code"] == "ACCOUNT_DEACTIVATED"


class TestAuthenticatedRequests:
    def test_me(self, client, regular_user, user_headers):
        response = client.get("/api/auth/me", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "analyst"

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_MISSING"

    def test_invalid_or_expired_token_is_forbidden(self, client, regular_user):
        invalid = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert invalid.status_code == 403
        assert invalid.json()["error_code"] == "TOKEN_INVALID"

        expired = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {_expired_token(regular_user)}"}
        )
        assert expired.status_code == 403

    def test_deactivated_user_token_rejected(self, client, db_session, regular_user, user_headers):
        regular_user.status = UserStatus.INACTIVE.value
        db_session.commit()

        response = client.get("/api/auth/me", headers=user_headers)
        assert response.status_code == 401
        assert response.json()["error_code"] == "USER_INACTIVE"

    def test_admin_only_route_denies_users(self, client, user_headers):
        response = client.get("/api/users", headers=user_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"


class TestRefreshAndLogout:
    def test_refresh_issues_new_token(self, client, db_session, regular_user, user_headers):
        response = client.post("/api/auth/refresh", headers=user_headers)

        assert response.status_code == 200
        assert decode_token(response.json()["token"]).user_id == regular_user.id
        assert db_session.query(AuditLog).filter(AuditLog.action_type == "token_refresh").count() == 1

    def test_refresh_failures(self, client, regular_user):
        missing = client.post("/api/auth/refresh")
        assert missing.status_code == 401
        assert missing.json()["error_code"] == "TOKEN_MISSING"

        expired = client.post(
            "/api/auth/refresh",
            headers={"Authorization": f"Bearer {_expired_token(regular_user)}"},
        )
        assert expired.status_code == 401
        assert expired.json()["error_code"] == "TOKEN_EXPIRED"

        invalid = client.post("/api/auth/refresh", headers={"Authorization": "Bearer garbage"})
        assert invalid.json()["error_code"] == "TOKEN_INVALID"

    def test_logout(self, client, db_session, regular_user, user_headers):
        response = client.post("/api/auth/logout", headers=user_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
        entry = db_session.query(AuditLog).filter(AuditLog.action_type == "logout").one()
        assert entry.user_id == regular_user.id
