"""Touch relation Pydantic schemas.

Contains request and response models for keep-in-touch endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

TouchStatusValue = Literal["pending", "accepted", "declined"]

__all__ = [
    "TouchStatusValue",
    "TouchRequestRequest",
    "TouchRespondRequest",
    "TouchOrderRequest",
    "TouchRequestOut",
    "TouchRespondOut",
    "TouchRemoveOut",
    "TouchContactOut",
    "IncomingTouchRequestOut",
    "TouchListOut",
    "TouchOrderOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class TouchRequestRequest(BaseModel):
    """Request body for asking a user to keep in touch."""

    target_username: str = Field(..., max_length=64, description="Username to request")


class TouchRespondRequest(BaseModel):
    """Request body for accepting or declining an incoming request."""

    accept: bool


class TouchOrderRequest(BaseModel):
    """Request body for rewriting the viewer's contact order."""

    ordered_user_ids: list[UUID] = Field(default_factory=list, max_length=500)


# =============================================================================
# Response Schemas
# =============================================================================


class TouchRequestOut(BaseModel):
    """Outcome of a touch request: the relation and its resulting status."""

    relation_id: int
    user_id: UUID
    status: TouchStatusValue


class TouchRespondOut(BaseModel):
    """Outcome of responding to an incoming request."""

    relation_id: int
    status: TouchStatusValue


class TouchRemoveOut(BaseModel):
    """Outcome of removing a contact. removed is False when no relation existed."""

    user_id: UUID
    removed: bool


class TouchContactOut(BaseModel):
    """An accepted contact as listed for the viewer."""

    user_id: UUID
    username: str
    avatar_url: str | None = None
    sort_order: int | None = None

    model_config = ConfigDict(from_attributes=True)


class IncomingTouchRequestOut(BaseModel):
    """A pending request addressed to the viewer."""

    id: int
    user_id: UUID
    username: str
    avatar_url: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TouchListOut(BaseModel):
    """Both touch views for the viewer."""

    in_touch: list[TouchContactOut]
    incoming: list[IncomingTouchRequestOut]


class TouchOrderOut(BaseModel):
    """Persisted contact order after pruning."""

    ordered_user_ids: list[UUID]
