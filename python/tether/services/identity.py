"""Identity lookup.

Read-through queries against the users table. Nothing here is cached;
every call reflects the current profile rows.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tether.db.models import User
from tether.schemas.common import ActorOut, ProfileOut


def find_user_id_by_username(db: Session, username: str) -> UUID | None:
    """Resolve a username to a user id.

    Tries an exact match first, then falls back to a case-insensitive match.

    Args:
        db: Database session.
        username: The username as typed by the caller (already trimmed).

    Returns:
        The user id, or None if no user matches.
    """
    if not username:
        return None

    user_id = db.scalar(select(User.id).where(User.username == username))
    if user_id is not None:
        return user_id

    return db.scalar(
        select(User.id)
        .where(func.lower(User.username) == username.lower())
        .order_by(User.created_at.asc())
        .limit(1)
    )


def get_profile(db: Session, user_id: UUID) -> ProfileOut | None:
    """Load one profile, or None if the user does not exist."""
    row = db.execute(
        select(User.id, User.username, User.avatar_url).where(User.id == user_id)
    ).first()
    if row is None:
        return None
    return ProfileOut(user_id=row.id, username=row.username, avatar_url=row.avatar_url)


def get_profiles(db: Session, user_ids: Iterable[UUID]) -> dict[UUID, ProfileOut]:
    """Load profiles for a set of user ids, keyed by id. Unknown ids are omitted."""
    ids = list(set(user_ids))
    if not ids:
        return {}

    rows = db.execute(
        select(User.id, User.username, User.avatar_url).where(User.id.in_(ids))
    ).all()
    return {
        row.id: ProfileOut(user_id=row.id, username=row.username, avatar_url=row.avatar_url)
        for row in rows
    }


def resolve_actor(db: Session, user_id: UUID) -> ActorOut | None:
    """Resolve an authenticated subject to an actor (user id + username)."""
    profile = get_profile(db, user_id)
    if profile is None:
        return None
    return ActorOut(user_id=profile.user_id, username=profile.username)
