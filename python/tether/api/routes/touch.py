"""Touch relation routes.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from tether.api.deps import get_db
from tether.auth.middleware import Viewer, get_viewer
from tether.db.models import MAX_BIGINT_ID
from tether.responses import success_response
from tether.schemas.touch import TouchOrderRequest, TouchRequestRequest, TouchRespondRequest
from tether.services import touch as touch_service

router = APIRouter()


@router.get("/touch")
def list_touch(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List accepted contacts (in the viewer's order) and incoming requests."""
    result = touch_service.list_touch(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/touch/requests")
def request_touch(
    body: TouchRequestRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Ask a user to keep in touch.

    Requesting back a pending request from the target accepts it; a
    declined relation is reopened with the viewer as requester.
    """
    result = touch_service.request_touch(db, viewer.user_id, body.target_username)
    return success_response(result.model_dump(mode="json"))


@router.post("/touch/requests/{relation_id}/respond")
def respond_touch(
    relation_id: Annotated[int, Path(gt=0, le=MAX_BIGINT_ID)],
    body: TouchRespondRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Accept or decline an incoming touch request. Requested party only."""
    result = touch_service.respond_touch(db, viewer.user_id, relation_id, body.accept)
    return success_response(result.model_dump(mode="json"))


@router.delete("/touch/contacts/{target_user_id}")
def remove_touch(
    target_user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Remove the relation with a user. Idempotent."""
    result = touch_service.remove_touch(db, viewer.user_id, target_user_id)
    return success_response(result.model_dump(mode="json"))


@router.put("/touch/order")
def set_touch_order(
    body: TouchOrderRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Rewrite the viewer's contact order. Returns the order actually stored."""
    result = touch_service.set_touch_order(db, viewer.user_id, body.ordered_user_ids)
    return success_response(result.model_dump(mode="json"))
