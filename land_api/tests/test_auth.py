# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for token validation and the authentication middleware.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import jwt
import pytest
import redis
from flask import Flask, jsonify

from land_api.middleware.auth import AuthMiddleware, require_auth, require_permission
from land_api.scripts.dev_tokens import issue_token
from land_api.services.auth import AuthService, TokenValidationError

from conftest import ADMIN_ID, CITIZEN_ID


class TestAuthService:
    """Test AuthService."""

    def test_valid_token(self, auth_service, make_token):
        payload = auth_service.validate_token(make_token(CITIZEN_ID, ["land:admin"], email="jane@example.com"))

        assert payload["sub"] == CITIZEN_ID
        assert payload["permissions"] == ["land:admin"]
        assert payload["email"] == "jane@example.com"

    def test_expired_token(self, auth_service, make_token):
        token = make_token(CITIZEN_ID, expires_in=timedelta(seconds=-5))

        with pytest.raises(TokenValidationError, match="expired"):
            auth_service.validate_token(token)

    def test_wrong_token_type(self, auth_service, make_token):
        token = make_token(CITIZEN_ID, token_type="refresh")

        with pytest.raises(TokenValidationError, match="type"):
            auth_service.validate_token(token, "access")

    def test_foreign_signature(self, auth_service):
        other_key = AuthService(secret="a-different-signing-secret-for-hmac-tests", algorithm="HS256")
        token = jwt.encode({"sub": "x", "exp": 9999999999}, "a-different-signing-secret-for-hmac-tests", algorithm="HS256")

        with pytest.raises(TokenValidationError):
            auth_service.validate_token(token)
        assert other_key.validate_token(token)["sub"] == "x"

    def test_garbage_token(self, auth_service):
        with pytest.raises(TokenValidationError):
            auth_service.validate_token("not.a.token")

    def test_hmac_requires_secret(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(ValueError):
            AuthService(algorithm="HS256")

    def test_extract_token_id(self, auth_service, jwt_keys):
        token = issue_token(jwt_keys[0], CITIZEN_ID)
        jti = jwt.decode(token, options={"verify_signature": False})["jti"]

        assert auth_service.extract_token_id(token) == jti


@pytest.fixture
def protected_app(auth_service):
    """Minimal app exposing one authenticated and one permission-gated route."""
    redis_service = MagicMock()
    redis_service.is_token_blocked.return_value = False
    middleware = AuthMiddleware(auth_service, redis_service)

    app = Flask(__name__)

    @app.route("/me")
    @require_auth(middleware)
    def me(user_context):
        return jsonify({"userId": user_context.user_id, "permissions": user_context.permissions})

    @app.route("/decide")
    @require_permission(["land:admin", "land:decide"], middleware)
    def decide(user_context):
        return jsonify({"ok": True})

    app.redis_service = redis_service
    return app


class TestAuthMiddleware:
    """Test require_auth and require_permission."""

    def test_missing_token(self, protected_app):
        response = protected_app.test_client().get("/me")

        assert response.status_code == 401
        assert response.get_json()["type"].endswith("/authentication-required")

    def test_valid_token(self, protected_app, make_token):
        response = protected_app.test_client().get(
            "/me", headers={"Authorization": f"Bearer {make_token(CITIZEN_ID)}"}
        )

        assert response.status_code == 200
        assert response.get_json() == {"userId": CITIZEN_ID, "permissions": []}

    def test_invalid_token(self, protected_app):
        response = protected_app.test_client().get("/me", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401

    def test_blocked_token(self, protected_app, make_token):
        protected_app.redis_service.is_token_blocked.return_value = True

        response = protected_app.test_client().get(
            "/me", headers={"Authorization": f"Bearer {make_token(CITIZEN_ID)}"}
        )

        assert response.status_code == 401
        assert response.get_json()["type"].endswith("/token-revoked")

    def test_blocklist_failure_treated_as_blocked(self, protected_app, make_token):
        protected_app.redis_service.is_token_blocked.side_effect = redis.ConnectionError("down")

        response = protected_app.test_client().get(
            "/me", headers={"Authorization": f"Bearer {make_token(CITIZEN_ID)}"}
        )

        assert response.status_code == 401

    def test_missing_permission(self, protected_app, make_token):
        token = make_token(ADMIN_ID, ["land:admin"])

        response = protected_app.test_client().get("/decide", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403
        assert "land:decide" in response.get_json()["detail"]

    def test_all_permissions_present(self, protected_app, make_token):
        token = make_token(ADMIN_ID, ["land:admin", "land:decide"])

        response = protected_app.test_client().get("/decide", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200

    def test_space_separated_permissions(self, auth_service):
        middleware = AuthMiddleware(auth_service)

        context = middleware.build_user_context(
            {"sub": "u1", "permissions": "land:admin land:decide"},
            {"ip_address": "127.0.0.1"}
        )

        assert context.permissions == ["land:admin", "land:decide"]
        assert context.ip_address == "127.0.0.1"

    def test_no_blocklist_configured(self, auth_service):
        assert AuthMiddleware(auth_service).is_token_blocked("anything") is False
