"""X-Request-ID correlation and the per-request access log.

The caller's X-Request-ID is kept when it is safe to echo (UUIDs are
lowercased); otherwise a UUID4 is minted. The id is bound into the logging
context, echoed in the response header and copied into error envelopes.
Registered last so it runs outermost and auth failures carry it too.
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from tether.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]+")

logger = get_logger(__name__)


def _as_uuid(value: str) -> uuid.UUID | None:
    """Parse value only if it is a UUID in canonical hyphenated form."""
    try:
        parsed = uuid.UUID(value)
    except ValueError:
        return None
    return parsed if str(parsed) == value.lower() else None


def is_valid_request_id(value: str) -> bool:
    if not value or len(value.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return False
    return _as_uuid(value) is not None or _SAFE_REQUEST_ID.fullmatch(value) is not None


def normalize_request_id(value: str) -> str:
    parsed = _as_uuid(value)
    return str(parsed) if parsed is not None else value


def resolve_request_id(incoming: str | None) -> str:
    """The id to use for a request, given whatever the caller sent."""
    if incoming and is_valid_request_id(incoming):
        return normalize_request_id(incoming)
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds the request id and logs one request_completed entry per request.

    The entry carries the viewer's user id once auth has resolved one, and
    is raised to warning level for 5xx responses.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed")
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.log_requests:
                self._log_completed(request, response, started)
            return response
        finally:
            clear_request_context()

    @staticmethod
    def _log_completed(request: Request, response: Response, started: float) -> None:
        viewer = getattr(request.state, "viewer", None)
        log = logger.bind(user_id=str(viewer.user_id)) if viewer is not None else logger
        emit = log.warning if response.status_code >= 500 else log.info
        emit(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
