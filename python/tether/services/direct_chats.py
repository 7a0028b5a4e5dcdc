"""Direct chat service layer.

Direct chats are derived from touch relations: a channel for a pair may only
be opened while the two users share an accepted relation. Once opened the
channel persists even if the relation later changes.

The two participants are stored in canonical order (string comparison of
the ids), so the (participant_low, participant_high) unique key identifies
one channel per unordered pair regardless of who opens it first.
"""

from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from tether.db.models import DirectChannel, DirectChannelOrderEntry, DirectMessage, utcnow
from tether.db.session import transaction, upsert_insert
from tether.errors import ApiErrorCode, ForbiddenError, InvalidRequestError, NotFoundError
from tether.logging import get_logger
from tether.schemas.direct_chats import (
    DirectChatOrderOut,
    DirectChatOut,
    DirectChatRemovedOut,
    DirectMessageOut,
)
from tether.services import identity, ordering, touch
from tether.services.messages import clamp_limit, normalize_content

logger = get_logger(__name__)


def canonical_pair(user_a: UUID, user_b: UUID) -> tuple[UUID, UUID]:
    """Order two user ids by their string form; the pair's storage key."""
    if str(user_a) <= str(user_b):
        return user_a, user_b
    return user_b, user_a


def _participant_clause(user_id: UUID):
    return or_(DirectChannel.participant_low == user_id, DirectChannel.participant_high == user_id)


def _load_channel_for_participant(db: Session, chat_id: UUID, viewer_id: UUID):
    row = db.execute(
        select(
            DirectChannel.id, DirectChannel.participant_low, DirectChannel.participant_high
        ).where(DirectChannel.id == chat_id)
    ).first()
    if row is None:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    if viewer_id not in (row.participant_low, row.participant_high):
        raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Not a participant in this chat")
    return row


def open_direct_chat(db: Session, viewer_id: UUID, target_user_id: UUID) -> DirectChatOut:
    """Open the direct chat with a user, creating it on first use.

    Re-opening an existing chat bumps its updated_at.

    Args:
        db: Database session.
        viewer_id: The opening user.
        target_user_id: The other participant.

    Returns:
        The chat with the other participant's profile.

    Raises:
        InvalidRequestError: The target is the viewer.
        ForbiddenError: The two users are not in touch.
        NotFoundError: The target has no profile.
    """
    if target_user_id == viewer_id:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_TARGET, "Cannot chat with yourself")

    with transaction(db):
        if not touch.is_in_touch(db, viewer_id, target_user_id):
            raise ForbiddenError(ApiErrorCode.E_NOT_IN_TOUCH, "Not in touch")

        low, high = canonical_pair(viewer_id, target_user_id)
        now = utcnow()
        stmt = (
            upsert_insert(db, DirectChannel)
            .values(
                id=uuid4(),
                participant_low=low,
                participant_high=high,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_update(
                index_elements=["participant_low", "participant_high"],
                set_={"updated_at": now},
            )
        )
        db.execute(stmt)

        row = db.execute(
            select(DirectChannel.id, DirectChannel.updated_at).where(
                DirectChannel.participant_low == low,
                DirectChannel.participant_high == high,
            )
        ).one()

        profile = identity.get_profile(db, target_user_id)
        if profile is None:
            raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "Target profile missing")

    logger.info("direct_chat_opened", chat_id=str(row.id), target_id=str(target_user_id))
    return DirectChatOut(
        chat_id=row.id,
        other_user_id=target_user_id,
        username=profile.username,
        avatar_url=profile.avatar_url,
        updated_at=row.updated_at,
    )


def list_direct_chats(db: Session, viewer_id: UUID) -> list[DirectChatOut]:
    """List the viewer's direct chats.

    Ordered by the viewer's explicit order (unordered last), then by most
    recent activity. Chats whose other participant has no profile are skipped.
    """
    rows = db.execute(
        select(
            DirectChannel.id,
            DirectChannel.participant_low,
            DirectChannel.participant_high,
            DirectChannel.updated_at,
            DirectChannelOrderEntry.sort_order,
        )
        .outerjoin(
            DirectChannelOrderEntry,
            (DirectChannelOrderEntry.channel_id == DirectChannel.id)
            & (DirectChannelOrderEntry.owner_user_id == viewer_id),
        )
        .where(_participant_clause(viewer_id))
        .order_by(
            DirectChannelOrderEntry.sort_order.is_(None),
            DirectChannelOrderEntry.sort_order.asc(),
            DirectChannel.updated_at.desc(),
        )
    ).all()

    def other_of(row) -> UUID:
        return row.participant_high if row.participant_low == viewer_id else row.participant_low

    profiles = identity.get_profiles(db, (other_of(row) for row in rows))

    chats = []
    for row in rows:
        profile = profiles.get(other_of(row))
        if profile is None:
            continue
        chats.append(
            DirectChatOut(
                chat_id=row.id,
                other_user_id=profile.user_id,
                username=profile.username,
                avatar_url=profile.avatar_url,
                updated_at=row.updated_at,
                sort_order=row.sort_order,
            )
        )
    return chats


def list_direct_messages(
    db: Session, viewer_id: UUID, chat_id: UUID, limit: int | None = None
) -> list[DirectMessageOut]:
    """List messages oldest first. Participants only.

    Raises:
        NotFoundError: No such chat.
        ForbiddenError: The viewer is not a participant.
    """
    limit = clamp_limit(limit)
    _load_channel_for_participant(db, chat_id, viewer_id)

    rows = db.execute(
        select(
            DirectMessage.id,
            DirectMessage.channel_id,
            DirectMessage.sender_id,
            DirectMessage.content,
            DirectMessage.created_at,
        )
        .where(DirectMessage.channel_id == chat_id)
        .order_by(DirectMessage.created_at.asc(), DirectMessage.id.asc())
        .limit(limit)
    ).all()

    return [
        DirectMessageOut(
            id=row.id,
            chat_id=row.channel_id,
            sender_id=row.sender_id,
            content=row.content,
            created_at=row.created_at,
        )
        for row in rows
    ]


def send_direct_message(
    db: Session, viewer_id: UUID, chat_id: UUID, content: str
) -> DirectMessageOut:
    """Post a message and bump the chat's updated_at.

    Raises:
        InvalidRequestError: Content empty after trimming.
        NotFoundError: No such chat.
        ForbiddenError: The viewer is not a participant.
    """
    text = normalize_content(content)

    with transaction(db):
        _load_channel_for_participant(db, chat_id, viewer_id)

        now = utcnow()
        message = DirectMessage(
            channel_id=chat_id, sender_id=viewer_id, content=text, created_at=now
        )
        db.add(message)
        db.flush()

        db.execute(
            update(DirectChannel)
            .where(DirectChannel.id == chat_id)
            .values(updated_at=now)
        )

    return DirectMessageOut(
        id=message.id,
        chat_id=chat_id,
        sender_id=viewer_id,
        content=message.content,
        created_at=message.created_at,
    )


def remove_direct_chat(db: Session, viewer_id: UUID, chat_id: UUID) -> DirectChatRemovedOut:
    """Hard-delete a chat with its messages and every owner's order entry.

    Raises:
        NotFoundError: No such chat.
        ForbiddenError: The viewer is not a participant.
    """
    with transaction(db):
        _load_channel_for_participant(db, chat_id, viewer_id)

        db.execute(delete(DirectMessage).where(DirectMessage.channel_id == chat_id))
        db.execute(
            delete(DirectChannelOrderEntry).where(DirectChannelOrderEntry.channel_id == chat_id)
        )
        db.execute(delete(DirectChannel).where(DirectChannel.id == chat_id))

    logger.info("direct_chat_removed", chat_id=str(chat_id))
    return DirectChatRemovedOut(chat_id=chat_id, removed=True)


def set_direct_chat_order(
    db: Session, viewer_id: UUID, ordered_chat_ids: list[UUID]
) -> DirectChatOrderOut:
    """Rewrite the viewer's direct chat order.

    Duplicates and chats the viewer does not participate in are dropped.
    """
    candidates = ordering.dedupe_ids(ordered_chat_ids)

    with transaction(db):
        participating: set[UUID] = set()
        if candidates:
            participating = set(
                db.scalars(
                    select(DirectChannel.id).where(
                        DirectChannel.id.in_(candidates), _participant_clause(viewer_id)
                    )
                ).all()
            )
        kept = [chat_id for chat_id in candidates if chat_id in participating]
        ordering.replace_order(db, DirectChannelOrderEntry.channel_id, viewer_id, kept)

    return DirectChatOrderOut(ordered_chat_ids=kept)
