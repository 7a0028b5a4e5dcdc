"""API error definitions.

Every failure raised by the service layer is an ApiError carrying an explicit
code. Each code maps to an HTTP status and to a coarse ErrorKind, so callers
never have to infer the failure class from message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure classes surfaced to callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_STATE = "invalid_state"
    UNAUTHENTICATED = "unauthenticated"
    INTERNAL = "internal"


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_NOT_IN_TOUCH = "E_NOT_IN_TOUCH"
    E_NOT_CHAT_OWNER = "E_NOT_CHAT_OWNER"
    E_NOT_CHAT_MEMBER = "E_NOT_CHAT_MEMBER"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_RELATION_NOT_FOUND = "E_RELATION_NOT_FOUND"
    E_CHAT_NOT_FOUND = "E_CHAT_NOT_FOUND"
    E_MEMBERSHIP_NOT_FOUND = "E_MEMBERSHIP_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_TARGET = "E_INVALID_TARGET"
    E_USERNAME_REQUIRED = "E_USERNAME_REQUIRED"
    E_CONTENT_REQUIRED = "E_CONTENT_REQUIRED"

    # Invalid state errors (409)
    E_REQUEST_ALREADY_RESOLVED = "E_REQUEST_ALREADY_RESOLVED"
    E_CANNOT_REQUEST_JOIN = "E_CANNOT_REQUEST_JOIN"
    E_CANNOT_INVITE = "E_CANNOT_INVITE"
    E_INVITE_NOT_PENDING = "E_INVITE_NOT_PENDING"
    E_REQUEST_NOT_PENDING = "E_REQUEST_NOT_PENDING"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_STORE_UNAVAILABLE = "E_STORE_UNAVAILABLE"  # 503


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_IN_TOUCH: 403,
    ApiErrorCode.E_NOT_CHAT_OWNER: 403,
    ApiErrorCode.E_NOT_CHAT_MEMBER: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_RELATION_NOT_FOUND: 404,
    ApiErrorCode.E_CHAT_NOT_FOUND: 404,
    ApiErrorCode.E_MEMBERSHIP_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_TARGET: 400,
    ApiErrorCode.E_USERNAME_REQUIRED: 400,
    ApiErrorCode.E_CONTENT_REQUIRED: 400,
    ApiErrorCode.E_REQUEST_ALREADY_RESOLVED: 409,
    ApiErrorCode.E_CANNOT_REQUEST_JOIN: 409,
    ApiErrorCode.E_CANNOT_INVITE: 409,
    ApiErrorCode.E_INVITE_NOT_PENDING: 409,
    ApiErrorCode.E_REQUEST_NOT_PENDING: 409,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_STORE_UNAVAILABLE: 503,
}

STATUS_TO_KIND: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.UNAUTHENTICATED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.INVALID_STATE,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        """Coarse failure class derived from the status code."""
        return STATUS_TO_KIND.get(self.status_code, ErrorKind.INTERNAL)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """The entity exists but its current state does not admit the transition."""

    def __init__(self, code: ApiErrorCode, message: str):
        super().__init__(code, message)
