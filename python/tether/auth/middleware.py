"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer token verification and actor resolution
- get_viewer: Dependency for accessing the authenticated viewer
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tether.auth.verifier import TokenVerifier
from tether.errors import ApiError, ApiErrorCode
from tether.responses import error_response
from tether.schemas.common import ActorOut

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from the token's sub claim).
        username: The viewer's current username.
    """

    user_id: UUID
    username: str

    def as_actor(self) -> ActorOut:
        return ActorOut(user_id=self.user_id, username=self.username)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract and parse bearer token
    3. Verify token via TokenVerifier
    4. Resolve the subject to an existing user via the actor resolver
    5. Attach Viewer to request state

    A valid token whose subject has no user row is rejected with 401; users
    are never created implicitly.
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        actor_resolver: Callable[[UUID], ActorOut | None],
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: TokenVerifier implementation for JWT verification.
            actor_resolver: Function(user_id) -> ActorOut, or None for unknown users.
        """
        super().__init__(app)
        self.verifier = verifier
        self.actor_resolver = actor_resolver

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        try:
            payload = self.verifier.verify(token)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)

        user_id = UUID(payload["sub"])

        try:
            actor = self.actor_resolver(user_id)
        except Exception as e:
            logger.exception("Actor resolution failed for user %s: %s", user_id, e)
            return self._error_json_response(
                ApiErrorCode.E_INTERNAL,
                "Internal server error",
                500,
            )

        if actor is None:
            logger.warning(
                "auth_failure",
                extra={"reason": "unknown_user", "request_path": request.url.path},
            )
            return self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Unknown user",
                401,
            )

        request.state.viewer = Viewer(user_id=actor.user_id, username=actor.username)

        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_header", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Authentication required",
                401,
            )

        if not auth_header.lower().startswith("bearer "):
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        token = auth_header[7:].strip()
        if not token:
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer
