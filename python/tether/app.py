"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Token Verification:
- Every environment uses RuntimeTokenVerifier (HS256, shared secret)
- Only the secret, issuer and audience change between environments

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (verifies token, resolves actor, sets viewer)
3. Route handler
4. AuthMiddleware (returns response)
5. RequestIDMiddleware (logs, sets response header)
"""

import json
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tether.api.routes import create_api_router
from tether.auth.middleware import AuthMiddleware
from tether.auth.verifier import RuntimeTokenVerifier, TokenVerifier
from tether.config import get_settings
from tether.db.session import get_session_factory
from tether.errors import ApiError, ApiErrorCode
from tether.logging import configure_logging, get_logger
from tether.middleware.request_id import RequestIDMiddleware
from tether.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    store_error_handler,
    unhandled_exception_handler,
)
from tether.schemas.common import ActorOut
from tether.services.identity import resolve_actor

logger = get_logger(__name__)


def create_actor_resolver(session_factory=None):
    """Create an actor resolver that opens its own database session.

    The resolver is called by the auth middleware for each authenticated
    request. It returns None for subjects with no user row.
    """
    session_factory = session_factory or get_session_factory()

    def resolve(user_id: UUID) -> ActorOut | None:
        db = session_factory()
        try:
            return resolve_actor(db, user_id)
        finally:
            db.close()

    return resolve


def create_token_verifier() -> RuntimeTokenVerifier:
    """Create the runtime token verifier from settings."""
    settings = get_settings()
    return RuntimeTokenVerifier(
        secret=settings.effective_token_secret,
        issuer=settings.token_issuer,
        audience=settings.token_audience,
    )


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_json)

    app = FastAPI(
        title="Tether API",
        description="Keep-in-touch relations, hush chats and direct chats",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(OperationalError, store_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (bodies, path ids, query params)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            verifier=token_verifier or create_token_verifier(),
            actor_resolver=create_actor_resolver(),
        )
        logger.info("auth_middleware_enabled", env=settings.tether_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call this AFTER all other middleware is added, so it runs FIRST and
    every response carries X-Request-ID, including auth failures.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
