"""Hush chat Pydantic schemas.

Contains request and response models for hush chat endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

HushRoleValue = Literal["owner", "member"]
HushMemberStatusValue = Literal["invited", "requested", "accepted", "declined", "left", "removed"]

# =============================================================================
# Request Schemas
# =============================================================================


class CreateHushRequest(BaseModel):
    """Request body for starting a hush chat with another user."""

    target_user_id: UUID


class HushInviteRequest(BaseModel):
    """Request body for inviting a user into a hush chat."""

    target_user_id: UUID


class HushDecisionRequest(BaseModel):
    """Request body for accept/decline decisions (invites and join requests)."""

    accept: bool


class SendMessageRequest(BaseModel):
    """Request body for posting a message. Content is trimmed and truncated server-side."""

    content: str = Field(..., max_length=10000)


# =============================================================================
# Response Schemas
# =============================================================================


class HushChatOut(BaseModel):
    """An open hush chat as listed for the viewer."""

    id: UUID
    created_by: UUID
    created_at: datetime
    label: str
    my_status: HushMemberStatusValue | None = None
    my_role: HushRoleValue | None = None
    can_request_join: bool


class HushInviteOut(BaseModel):
    """An invitation addressed to the viewer."""

    id: int
    chat_id: UUID
    label: str


class HushJoinRequestOut(BaseModel):
    """A pending join request on a chat the viewer created."""

    id: int
    chat_id: UUID
    user_id: UUID
    username: str


class HushListOut(BaseModel):
    """All hush views for the viewer."""

    chats: list[HushChatOut]
    invites_for_me: list[HushInviteOut]
    requests_for_me: list[HushJoinRequestOut]


class HushChatCreatedOut(BaseModel):
    """A freshly created hush chat."""

    chat_id: UUID
    owner_user_id: UUID
    invited_user_id: UUID


class HushMembershipOut(BaseModel):
    """A membership row after a transition."""

    chat_id: UUID
    user_id: UUID
    role: HushRoleValue
    status: HushMemberStatusValue

    model_config = ConfigDict(from_attributes=True)


class HushLeaveOut(BaseModel):
    """Outcome of leaving a chat."""

    chat_id: UUID
    chat_closed: bool


class HushMessageOut(BaseModel):
    """A hush chat message enriched with the sender's name."""

    id: int
    chat_id: UUID
    user_id: UUID
    username: str
    content: str
    created_at: datetime
