"""Message content and paging rules shared by hush chats and direct chats."""

from tether.errors import ApiErrorCode, InvalidRequestError

MESSAGE_MAX_LENGTH = 2000
DEFAULT_MESSAGE_LIMIT = 200
MAX_MESSAGE_LIMIT = 300


def clamp_limit(limit: int | None) -> int:
    """Clamp a message page size to [1, 300]; missing or zero means the default."""
    if not limit:
        return DEFAULT_MESSAGE_LIMIT
    return max(1, min(MAX_MESSAGE_LIMIT, int(limit)))


def normalize_content(content: str | None) -> str:
    """Trim message content and bound it to the maximum length.

    Raises:
        InvalidRequestError: Content is empty after trimming.
    """
    text = (content or "").strip()
    if not text:
        raise InvalidRequestError(ApiErrorCode.E_CONTENT_REQUIRED, "Content required")
    return text[:MESSAGE_MAX_LENGTH]
