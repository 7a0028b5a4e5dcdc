"""Hush chat routes.

Routes are transport-only: each calls exactly one service function.

Static routes (/hush) are registered before /hush/{chat_id} routes.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tether.api.deps import get_db
from tether.auth.middleware import Viewer, get_viewer
from tether.responses import success_response
from tether.schemas.hush import (
    CreateHushRequest,
    HushDecisionRequest,
    HushInviteRequest,
    SendMessageRequest,
)
from tether.services import hush as hush_service

router = APIRouter()


# =============================================================================
# Chats
# =============================================================================


@router.get("/hush")
def list_hush(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List open chats, invites for the viewer and join requests on the viewer's chats."""
    result = hush_service.list_hush(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/hush", status_code=201)
def create_hush(
    body: CreateHushRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Start a chat owned by the viewer and invite one user."""
    result = hush_service.create_hush_with(db, viewer.user_id, body.target_user_id)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Membership
# =============================================================================


@router.post("/hush/{chat_id}/invites")
def invite_to_hush(
    chat_id: UUID,
    body: HushInviteRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Owner invites a user. Declined, left or removed users can be re-invited."""
    result = hush_service.invite_to_hush(db, viewer.user_id, chat_id, body.target_user_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/hush/{chat_id}/join-requests")
def request_join_hush(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Ask to join a chat."""
    result = hush_service.request_join_hush(db, viewer.user_id, chat_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/hush/{chat_id}/join-requests/{member_user_id}/resolve")
def resolve_join_request(
    chat_id: UUID,
    member_user_id: UUID,
    body: HushDecisionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Owner accepts or declines a pending join request."""
    result = hush_service.resolve_join_request(
        db, viewer.user_id, chat_id, member_user_id, body.accept
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/hush/{chat_id}/invite/respond")
def respond_hush_invite(
    chat_id: UUID,
    body: HushDecisionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Accept or decline the viewer's invitation to a chat."""
    result = hush_service.respond_hush_invite(db, viewer.user_id, chat_id, body.accept)
    return success_response(result.model_dump(mode="json"))


@router.post("/hush/{chat_id}/leave")
def leave_hush(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Leave a chat. An owner leaving a two-person chat closes it."""
    result = hush_service.leave_hush(db, viewer.user_id, chat_id)
    return success_response(result.model_dump(mode="json"))


@router.delete("/hush/{chat_id}/members/{member_user_id}")
def remove_hush_member(
    chat_id: UUID,
    member_user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Owner removes a member."""
    result = hush_service.remove_hush_member(db, viewer.user_id, chat_id, member_user_id)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Messages
# =============================================================================


@router.get("/hush/{chat_id}/messages")
def list_hush_messages(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int | None = Query(default=None, description="Maximum results (clamped to 1-300)"),
) -> dict:
    """List messages oldest first. Accepted members only."""
    result = hush_service.list_hush_messages(db, viewer.user_id, chat_id, limit)
    return success_response([m.model_dump(mode="json") for m in result])


@router.post("/hush/{chat_id}/messages", status_code=201)
def send_hush_message(
    chat_id: UUID,
    body: SendMessageRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Post a message. Accepted members only."""
    result = hush_service.send_hush_message(db, viewer.user_id, chat_id, body.content)
    return success_response(result.model_dump(mode="json"))
