"""Current user endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from tether.auth.middleware import Viewer, get_viewer
from tether.responses import success_response

router = APIRouter()


@router.get("/me")
async def get_me(viewer: Annotated[Viewer, Depends(get_viewer)]) -> dict:
    """Return the authenticated actor's user id and username."""
    return success_response({"user_id": str(viewer.user_id), "username": viewer.username})
