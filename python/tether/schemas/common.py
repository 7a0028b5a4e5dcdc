"""Shared Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProfileOut(BaseModel):
    """Public profile of a user as shown next to relations and chats."""

    user_id: UUID
    username: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ActorOut(BaseModel):
    """The authenticated caller."""

    user_id: UUID
    username: str
