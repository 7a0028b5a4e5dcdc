"""Response envelopes and the exception handlers that produce them.

    success: {"data": ...}
    failure: {"error": {"code", "message", "kind", "request_id"?}}

Handlers never put exception text from outside ApiError into a response.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tether.errors import ApiError, ApiErrorCode
from tether.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Framework-raised statuses (unknown routes, wrong methods) and the codes they carry
_HTTP_STATUS_CODES: dict[int, ApiErrorCode] = {
    400: ApiErrorCode.E_INVALID_REQUEST,
    401: ApiErrorCode.E_UNAUTHENTICATED,
    403: ApiErrorCode.E_FORBIDDEN,
    404: ApiErrorCode.E_NOT_FOUND,
    405: ApiErrorCode.E_INVALID_REQUEST,
    422: ApiErrorCode.E_INVALID_REQUEST,
}


def success_response(data: Any) -> dict[str, Any]:
    return {"data": data}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Build the failure envelope; request_id defaults to the current request's."""
    error = ApiError(code, message)
    body = {"code": code.value, "message": message, "kind": error.kind.value}
    request_id = request_id or get_request_id()
    if request_id:
        body["request_id"] = request_id
    return {"error": body}


def _render(error: ApiError, status_code: int | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or error.status_code,
        content=error_response(error.code, error.message),
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _render(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    return _render(ApiError(code, str(exc.detail or "Request failed")), exc.status_code)


async def store_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """The store refused or dropped the connection mid-request."""
    logger.error("store_unavailable", error_type=type(exc.orig).__name__)
    return _render(ApiError(ApiErrorCode.E_STORE_UNAVAILABLE, "Store unavailable"))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error_type=type(exc).__name__)
    return _render(ApiError(ApiErrorCode.E_INTERNAL, "Internal server error"))
