"""Context snapshot route."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tether.api.deps import get_actor, get_db
from tether.responses import success_response
from tether.schemas.common import ActorOut
from tether.services import snapshot as snapshot_service

router = APIRouter()


@router.get("/context/snapshot")
def get_snapshot(
    actor: Annotated[ActorOut, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Return the actor with touch lists, direct chats and hush lists in one read."""
    result = snapshot_service.build_snapshot(db, actor)
    return success_response(result.model_dump(mode="json"))
