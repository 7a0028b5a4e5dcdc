"""Direct chat routes.

Routes are transport-only: each calls exactly one service function.

PUT /direct-chats/order is registered before the /direct-chats/{chat_id}
routes so "order" is never captured as a chat id.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tether.api.deps import get_db
from tether.auth.middleware import Viewer, get_viewer
from tether.responses import success_response
from tether.schemas.direct_chats import DirectChatOrderRequest, OpenDirectChatRequest
from tether.schemas.hush import SendMessageRequest
from tether.services import direct_chats as direct_chats_service

router = APIRouter()


@router.get("/direct-chats")
def list_direct_chats(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the viewer's direct chats, explicit order first, then most recent."""
    result = direct_chats_service.list_direct_chats(db, viewer.user_id)
    return success_response([c.model_dump(mode="json") for c in result])


@router.post("/direct-chats")
def open_direct_chat(
    body: OpenDirectChatRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Open the direct chat with a user the viewer is in touch with."""
    result = direct_chats_service.open_direct_chat(db, viewer.user_id, body.target_user_id)
    return success_response(result.model_dump(mode="json"))


@router.put("/direct-chats/order")
def set_direct_chat_order(
    body: DirectChatOrderRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Rewrite the viewer's direct chat order."""
    result = direct_chats_service.set_direct_chat_order(db, viewer.user_id, body.ordered_chat_ids)
    return success_response(result.model_dump(mode="json"))


@router.get("/direct-chats/{chat_id}/messages")
def list_direct_messages(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int | None = Query(default=None, description="Maximum results (clamped to 1-300)"),
) -> dict:
    """List messages oldest first. Participants only."""
    result = direct_chats_service.list_direct_messages(db, viewer.user_id, chat_id, limit)
    return success_response([m.model_dump(mode="json") for m in result])


@router.post("/direct-chats/{chat_id}/messages", status_code=201)
def send_direct_message(
    chat_id: UUID,
    body: SendMessageRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Post a message to a direct chat."""
    result = direct_chats_service.send_direct_message(db, viewer.user_id, chat_id, body.content)
    return success_response(result.model_dump(mode="json"))


@router.delete("/direct-chats/{chat_id}")
def remove_direct_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Delete a direct chat and its messages for both participants."""
    result = direct_chats_service.remove_direct_chat(db, viewer.user_id, chat_id)
    return success_response(result.model_dump(mode="json"))
