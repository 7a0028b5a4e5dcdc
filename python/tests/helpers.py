"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication (HS256, shared test secret)
- Header generation for test requests
- Envelope accessors for API responses
"""

import time
from uuid import UUID, uuid4

import jwt

TEST_TOKEN_SECRET = "tether-test-secret"
DEFAULT_ISSUER = "test-issuer"
DEFAULT_AUDIENCE = "test-audience"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    secret: str = TEST_TOKEN_SECRET,
    **extra_claims,
) -> str:
    """Mint a signed test JWT with `sub` set to user_id."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def mint_expired_token(user_id: UUID | str) -> str:
    """Mint a token that expired 1 hour ago (beyond the 60s leeway)."""
    return mint_test_token(user_id, expires_in=-3600)


def mint_token_with_bad_signature(user_id: UUID | str) -> str:
    """Mint a token signed with a different secret."""
    return mint_test_token(user_id, secret="some-other-secret")


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Return headers dict with valid Authorization for the given user."""
    token = mint_test_token(user_id, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def create_test_user_id() -> UUID:
    """Generate a random UUID for a test user."""
    return uuid4()


def error_code(response) -> str:
    """Return the error code from an error envelope."""
    return response.json()["error"]["code"]
