"""Integration tests for authentication middleware and the token verifier.

Tests the full auth flow including:
- Bearer token validation (missing, malformed, expired, bad signature)
- Issuer / audience / sub checks in RuntimeTokenVerifier
- Actor resolution (unknown users are rejected, never created)
- GET /me endpoint
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from tether.app import add_request_id_middleware, create_app
from tether.auth.middleware import AuthMiddleware
from tether.auth.verifier import RuntimeTokenVerifier
from tether.db.models import User
from tether.errors import ApiError, ApiErrorCode
from tests.factories import create_test_user
from tests.helpers import (
    DEFAULT_AUDIENCE,
    DEFAULT_ISSUER,
    TEST_TOKEN_SECRET,
    auth_headers,
    create_test_user_id,
    error_code,
    mint_expired_token,
    mint_test_token,
    mint_token_with_bad_signature,
)


class TestAuthBoundary:
    """Tests for the authentication boundary.

    These tests verify that unauthenticated requests are rejected correctly.
    """

    def test_no_authorization_header(self, auth_client):
        """No Authorization header returns 401 E_UNAUTHENTICATED."""
        response = auth_client.get("/me")

        assert response.status_code == 401
        data = response.json()
        assert data["error"]["code"] == "E_UNAUTHENTICATED"
        assert "authentication" in data["error"]["message"].lower()

    def test_wrong_authorization_format(self, auth_client):
        response = auth_client.get("/me", headers={"Authorization": "Basic abc123"})
        assert response.status_code == 401
        assert error_code(response) == "E_UNAUTHENTICATED"

    def test_empty_bearer_token(self, auth_client):
        response = auth_client.get("/me", headers={"Authorization": "Bearer   "})
        assert response.status_code == 401

    def test_garbage_token(self, auth_client):
        response = auth_client.get("/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401
        assert error_code(response) == "E_UNAUTHENTICATED"

    def test_expired_token(self, auth_client, db_session):
        user_id = create_test_user(db_session)
        token = mint_expired_token(user_id)

        response = auth_client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert "expired" in response.json()["error"]["message"].lower()

    def test_bad_signature(self, auth_client, db_session):
        user_id = create_test_user(db_session)
        token = mint_token_with_bad_signature(user_id)

        response = auth_client.get("/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert "signature" in response.json()["error"]["message"].lower()

    def test_unknown_user_rejected(self, auth_client, db_session):
        """A valid token for a user with no row is 401, and no row is created."""
        response = auth_client.get("/me", headers=auth_headers(create_test_user_id()))

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Unknown user"
        assert db_session.scalar(select(func.count()).select_from(User)) == 0

    def test_health_is_public(self, auth_client):
        assert auth_client.get("/health").status_code == 200

    def test_resolver_failure_is_internal(self, test_verifier):
        """An exploding actor resolver yields 500, not a leaked traceback."""
        def resolver(user_id):
            raise RuntimeError("db down")

        app = create_app(skip_auth_middleware=True)
        app.add_middleware(
            AuthMiddleware,
            verifier=test_verifier,
            actor_resolver=resolver,
        )
        add_request_id_middleware(app, log_requests=False)

        with TestClient(app) as client:
            response = client.get("/me", headers=auth_headers(uuid4()))
        assert response.status_code == 500
        assert error_code(response) == "E_INTERNAL"


class TestMe:
    def test_me_returns_actor(self, auth_client, db_session):
        user_id = create_test_user(db_session, username="ada")

        response = auth_client.get("/me", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json() == {"data": {"user_id": str(user_id), "username": "ada"}}

    def test_username_reflects_current_row(self, auth_client, db_session):
        user_id = create_test_user(db_session, username="ada")
        db_session.get(User, user_id).username = "ada_l"
        db_session.commit()

        response = auth_client.get("/me", headers=auth_headers(user_id))
        assert response.json()["data"]["username"] == "ada_l"


class TestRuntimeTokenVerifier:
    @pytest.fixture
    def verifier(self):
        return RuntimeTokenVerifier(
            secret=TEST_TOKEN_SECRET, issuer=DEFAULT_ISSUER, audience=DEFAULT_AUDIENCE
        )

    def test_valid_token(self, verifier):
        user_id = uuid4()
        claims = verifier.verify(mint_test_token(user_id))
        assert claims["sub"] == str(user_id)

    def test_small_clock_skew_tolerated(self, verifier):
        verifier.verify(mint_test_token(uuid4(), expires_in=-30))

    def test_wrong_issuer(self, verifier):
        with pytest.raises(ApiError) as exc:
            verifier.verify(mint_test_token(uuid4(), issuer="someone-else"))
        assert exc.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert "issuer" in exc.value.message

    def test_wrong_audience(self, verifier):
        with pytest.raises(ApiError) as exc:
            verifier.verify(mint_test_token(uuid4(), audience="other-app"))
        assert "audience" in exc.value.message

    def test_issuer_trailing_slash_ignored(self):
        verifier = RuntimeTokenVerifier(secret=TEST_TOKEN_SECRET, issuer=DEFAULT_ISSUER + "/")
        verifier.verify(mint_test_token(uuid4()))

    def test_non_uuid_sub(self, verifier):
        with pytest.raises(ApiError) as exc:
            verifier.verify(mint_test_token("not-a-uuid"))
        assert "UUID" in exc.value.message

    def test_audience_optional(self):
        verifier = RuntimeTokenVerifier(secret=TEST_TOKEN_SECRET)
        verifier.verify(mint_test_token(uuid4()))
