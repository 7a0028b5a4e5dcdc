"""Health check endpoint.

Public. Reports whether the process can reach its store.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tether.api.deps import get_db
from tether.errors import ApiError, ApiErrorCode
from tether.logging import get_logger
from tether.responses import success_response

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check(db: Annotated[Session, Depends(get_db)]) -> dict:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("health_store_unreachable", error_type=type(exc).__name__)
        raise ApiError(ApiErrorCode.E_STORE_UNAVAILABLE, "Store unavailable") from exc
    return success_response({"status": "ok", "store": "ok"})
