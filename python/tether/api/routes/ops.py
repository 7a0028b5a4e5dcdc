"""Operation dispatch route.

POST /ops accepts {"action": "...", "payload": {...}} for clients that
prefer a single RPC-style endpoint. The body is validated against the
typed Operation union before anything runs.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tether.api.deps import get_actor, get_db
from tether.responses import success_response
from tether.schemas.common import ActorOut
from tether.schemas.ops import OperationRequest
from tether.services import ops as ops_service

router = APIRouter()


@router.post("/ops")
def run_operation(
    body: OperationRequest,
    actor: Annotated[ActorOut, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Dispatch one operation for the authenticated actor."""
    result = ops_service.dispatch(db, actor, body.root)
    return success_response(result.model_dump(mode="json"))
