"""Context snapshot: the viewer's touch, direct chat and hush views in one call."""

from sqlalchemy.orm import Session

from tether.schemas.common import ActorOut
from tether.schemas.snapshot import SnapshotOut
from tether.services import direct_chats, hush, touch


def build_snapshot(db: Session, actor: ActorOut) -> SnapshotOut:
    """Collect every relationship view for the actor.

    Args:
        db: Database session.
        actor: The authenticated caller.

    Returns:
        SnapshotOut with the actor, touch lists, direct chats and hush lists.
    """
    return SnapshotOut(
        actor=actor,
        touch=touch.list_touch(db, actor.user_id),
        chats=direct_chats.list_direct_chats(db, actor.user_id),
        hush=hush.list_hush(db, actor.user_id),
    )
