"""FastAPI dependencies for route handlers."""

from typing import Annotated

from fastapi import Depends

from tether.auth.middleware import Viewer, get_viewer
from tether.db.session import get_db
from tether.schemas.common import ActorOut

__all__ = ["get_db", "get_actor"]


def get_actor(viewer: Annotated[Viewer, Depends(get_viewer)]) -> ActorOut:
    """The authenticated viewer as an actor (user id + username)."""
    return viewer.as_actor()
