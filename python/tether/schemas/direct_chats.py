"""Direct chat Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class OpenDirectChatRequest(BaseModel):
    """Request body for opening (or re-opening) a direct chat."""

    target_user_id: UUID


class DirectChatOrderRequest(BaseModel):
    """Request body for rewriting the viewer's direct chat order."""

    ordered_chat_ids: list[UUID] = Field(default_factory=list, max_length=500)


class DirectChatOut(BaseModel):
    """A direct chat with the other participant's profile."""

    chat_id: UUID
    other_user_id: UUID
    username: str
    avatar_url: str | None = None
    updated_at: datetime
    sort_order: int | None = None


class DirectMessageOut(BaseModel):
    id: int
    chat_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime


class DirectChatRemovedOut(BaseModel):
    chat_id: UUID
    removed: bool


class DirectChatOrderOut(BaseModel):
    """Persisted direct chat order after pruning."""

    ordered_chat_ids: list[UUID]
