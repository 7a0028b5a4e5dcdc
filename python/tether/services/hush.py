"""Hush chat service layer.

Owns hush chats, the membership state machine and hush messages.

Membership state machine (per chat + user):
    (none) --invite--> invited --accept--> accepted --leave--> left
    (none) --request_join--> requested --owner accept--> accepted
    invited --decline--> declined      requested --owner decline--> declined
    accepted --owner remove--> removed
    {declined, left, removed} --request_join--> requested
    {declined, left, removed} --invite--> invited

Invariants:
- One membership row per (chat_id, user_id); invites and join requests
  upsert on that key and only touch status/display_name on conflict, so the
  owner role assigned at creation is never reassigned.
- Owner-only actions require the viewer's row to be role=owner AND
  status=accepted.
- When the owner leaves and the chat had at most two active members before
  the leave, the chat is closed.
"""

from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session

from tether.db.models import (
    HushChat,
    HushChatStatus,
    HushMembership,
    HushMemberStatus,
    HushMessage,
    HushRole,
    User,
    utcnow,
)
from tether.db.session import transaction, upsert_insert
from tether.errors import (
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from tether.logging import get_logger
from tether.schemas.hush import (
    HushChatCreatedOut,
    HushChatOut,
    HushInviteOut,
    HushJoinRequestOut,
    HushLeaveOut,
    HushListOut,
    HushMembershipOut,
    HushMessageOut,
)
from tether.services import identity
from tether.services.messages import clamp_limit, normalize_content

logger = get_logger(__name__)

# Statuses that no longer count as participating
INACTIVE_STATUSES = (
    HushMemberStatus.declined.value,
    HushMemberStatus.removed.value,
    HushMemberStatus.left.value,
)
# Statuses from which a fresh invite or join request may re-enter
REJOINABLE_STATUSES = INACTIVE_STATUSES
# Statuses whose names appear in the chat label
LABEL_STATUSES = (HushMemberStatus.invited.value, HushMemberStatus.accepted.value)
# Statuses that already have a live invite/request/membership
PENDING_OR_ACTIVE_STATUSES = (
    HushMemberStatus.accepted.value,
    HushMemberStatus.invited.value,
    HushMemberStatus.requested.value,
)

LABEL_FALLBACK = "hush"
UNKNOWN_NAME = "user"


def can_request_join(status: str | None, role: str | None = None) -> bool:
    """Whether a user with this membership (or none) may request to join."""
    if role == HushRole.owner.value:
        return False
    return status is None or status in REJOINABLE_STATUSES


# =============================================================================
# Lookups and guards
# =============================================================================


def _membership(db: Session, chat_id: UUID, user_id: UUID):
    return db.execute(
        select(
            HushMembership.id,
            HushMembership.role,
            HushMembership.status,
            HushMembership.display_name,
        ).where(HushMembership.chat_id == chat_id, HushMembership.user_id == user_id)
    ).first()


def _require_owner(db: Session, chat_id: UUID, viewer_id: UUID) -> None:
    row = _membership(db, chat_id, viewer_id)
    if (
        row is None
        or row.role != HushRole.owner.value
        or row.status != HushMemberStatus.accepted.value
    ):
        raise ForbiddenError(ApiErrorCode.E_NOT_CHAT_OWNER, "Only the chat owner can do this")


def _require_accepted_member(db: Session, chat_id: UUID, viewer_id: UUID) -> None:
    row = _membership(db, chat_id, viewer_id)
    if row is None or row.status != HushMemberStatus.accepted.value:
        raise ForbiddenError(ApiErrorCode.E_NOT_CHAT_MEMBER, "Not a member of this chat")


def _set_status(db: Session, chat_id: UUID, user_id: UUID, expected: str, new_status: str) -> bool:
    """Conditional status transition; False when the row is no longer in `expected`."""
    result = db.execute(
        update(HushMembership)
        .where(
            HushMembership.chat_id == chat_id,
            HushMembership.user_id == user_id,
            HushMembership.status == expected,
        )
        .values(status=new_status)
    )
    return result.rowcount == 1


def _upsert_membership(
    db: Session, chat_id: UUID, user_id: UUID, status: str, display_name: str | None
) -> None:
    """Insert a member row, or move a rejoinable row to `status`.

    Role is only set on insert. The conflict branch is guarded so a row that
    became active concurrently is left alone.
    """
    stmt = upsert_insert(db, HushMembership).values(
        chat_id=chat_id,
        user_id=user_id,
        role=HushRole.member.value,
        status=status,
        display_name=display_name,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["chat_id", "user_id"],
        set_={"status": status, "display_name": display_name},
        where=HushMembership.__table__.c.status.in_(REJOINABLE_STATUSES),
    )
    db.execute(stmt)


def build_chat_labels(db: Session, chat_ids: list[UUID]) -> dict[UUID, str]:
    """Label each chat with the names of its invited/accepted members.

    Names come from the cached display_name, then the current username.
    Chats with no visible members get the fallback label.
    """
    if not chat_ids:
        return {}

    rows = db.execute(
        select(HushMembership.chat_id, HushMembership.display_name, User.username)
        .outerjoin(User, User.id == HushMembership.user_id)
        .where(
            HushMembership.chat_id.in_(chat_ids),
            HushMembership.status.in_(LABEL_STATUSES),
        )
        .order_by(HushMembership.created_at.asc(), HushMembership.id.asc())
    ).all()

    names: dict[UUID, list[str]] = {chat_id: [] for chat_id in chat_ids}
    for row in rows:
        names[row.chat_id].append(row.display_name or row.username or UNKNOWN_NAME)

    return {chat_id: " + ".join(parts) or LABEL_FALLBACK for chat_id, parts in names.items()}


# =============================================================================
# Listing
# =============================================================================


def list_hush(db: Session, viewer_id: UUID) -> HushListOut:
    """List open chats, invites addressed to the viewer, and join requests on the viewer's chats.

    Args:
        db: Database session.
        viewer_id: The viewing user.

    Returns:
        HushListOut with chats newest first.
    """
    chat_rows = db.execute(
        select(HushChat.id, HushChat.created_by, HushChat.created_at)
        .where(HushChat.status == HushChatStatus.open.value)
        .order_by(HushChat.created_at.desc())
    ).all()
    chat_ids = [row.id for row in chat_rows]
    labels = build_chat_labels(db, chat_ids)

    mine = {}
    if chat_ids:
        mine = {
            row.chat_id: row
            for row in db.execute(
                select(HushMembership.chat_id, HushMembership.role, HushMembership.status).where(
                    HushMembership.user_id == viewer_id,
                    HushMembership.chat_id.in_(chat_ids),
                )
            ).all()
        }

    chats = []
    for row in chat_rows:
        membership = mine.get(row.id)
        status = membership.status if membership else None
        role = membership.role if membership else None
        chats.append(
            HushChatOut(
                id=row.id,
                created_by=row.created_by,
                created_at=row.created_at,
                label=labels.get(row.id, LABEL_FALLBACK),
                my_status=status,
                my_role=role,
                can_request_join=can_request_join(status, role),
            )
        )

    invite_rows = db.execute(
        select(HushMembership.id, HushMembership.chat_id)
        .join(HushChat, HushChat.id == HushMembership.chat_id)
        .where(
            HushMembership.user_id == viewer_id,
            HushMembership.status == HushMemberStatus.invited.value,
            HushChat.status == HushChatStatus.open.value,
        )
        .order_by(HushMembership.created_at.desc())
    ).all()
    invites = [
        HushInviteOut(id=row.id, chat_id=row.chat_id, label=labels.get(row.chat_id, LABEL_FALLBACK))
        for row in invite_rows
    ]

    request_rows = db.execute(
        select(
            HushMembership.id,
            HushMembership.chat_id,
            HushMembership.user_id,
            HushMembership.display_name,
            User.username,
        )
        .join(HushChat, HushChat.id == HushMembership.chat_id)
        .outerjoin(User, User.id == HushMembership.user_id)
        .where(
            HushChat.created_by == viewer_id,
            HushChat.status == HushChatStatus.open.value,
            HushMembership.status == HushMemberStatus.requested.value,
        )
        .order_by(HushMembership.created_at.asc(), HushMembership.id.asc())
    ).all()
    requests = [
        HushJoinRequestOut(
            id=row.id,
            chat_id=row.chat_id,
            user_id=row.user_id,
            username=row.username or row.display_name or UNKNOWN_NAME,
        )
        for row in request_rows
    ]

    return HushListOut(chats=chats, invites_for_me=invites, requests_for_me=requests)


# =============================================================================
# Membership transitions
# =============================================================================


def create_hush_with(db: Session, viewer_id: UUID, target_user_id: UUID) -> HushChatCreatedOut:
    """Start a hush chat owned by the viewer, inviting one user.

    The chat, the owner row (owner/accepted) and the target row
    (member/invited) are written in one transaction.

    Raises:
        InvalidRequestError: The target is the viewer.
        NotFoundError: Viewer or target has no profile.
    """
    if target_user_id == viewer_id:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_TARGET, "Cannot start a chat with yourself"
        )

    profiles = identity.get_profiles(db, [viewer_id, target_user_id])
    if viewer_id not in profiles or target_user_id not in profiles:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    with transaction(db):
        chat = HushChat(created_by=viewer_id, status=HushChatStatus.open.value)
        db.add(chat)
        db.flush()
        db.add_all(
            [
                HushMembership(
                    chat_id=chat.id,
                    user_id=viewer_id,
                    role=HushRole.owner.value,
                    status=HushMemberStatus.accepted.value,
                    display_name=profiles[viewer_id].username,
                ),
                HushMembership(
                    chat_id=chat.id,
                    user_id=target_user_id,
                    role=HushRole.member.value,
                    status=HushMemberStatus.invited.value,
                    display_name=profiles[target_user_id].username,
                ),
            ]
        )

    logger.info("hush_chat_created", chat_id=str(chat.id), invited_id=str(target_user_id))
    return HushChatCreatedOut(
        chat_id=chat.id, owner_user_id=viewer_id, invited_user_id=target_user_id
    )


def invite_to_hush(
    db: Session, viewer_id: UUID, chat_id: UUID, target_user_id: UUID
) -> HushMembershipOut:
    """Invite a user into a chat the viewer owns.

    A target whose row is declined, left or removed is moved back to invited.

    Raises:
        InvalidRequestError: The target is the viewer.
        ForbiddenError: The viewer is not the accepted owner.
        NotFoundError: The target user does not exist.
        ConflictError: The target is already accepted, invited or requested.
    """
    if target_user_id == viewer_id:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_TARGET, "Cannot invite yourself")

    with transaction(db):
        _require_owner(db, chat_id, viewer_id)

        profile = identity.get_profile(db, target_user_id)
        if profile is None:
            raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

        existing = _membership(db, chat_id, target_user_id)
        if existing is not None and existing.status in PENDING_OR_ACTIVE_STATUSES:
            raise ConflictError(ApiErrorCode.E_CANNOT_INVITE, f"User is already {existing.status}")

        _upsert_membership(
            db, chat_id, target_user_id, HushMemberStatus.invited.value, profile.username
        )
        row = _membership(db, chat_id, target_user_id)
        if row is None or row.status != HushMemberStatus.invited.value:
            raise ConflictError(ApiErrorCode.E_CANNOT_INVITE, "Membership changed concurrently")

    logger.info("hush_member_invited", chat_id=str(chat_id), target_id=str(target_user_id))
    return HushMembershipOut(
        chat_id=chat_id, user_id=target_user_id, role=row.role, status=row.status
    )


def request_join_hush(db: Session, viewer_id: UUID, chat_id: UUID) -> HushMembershipOut:
    """Ask to join a chat.

    Allowed when the viewer has no row or a declined/left/removed member row.
    The owner row never re-enters through a join request.

    Raises:
        NotFoundError: The chat does not exist.
        ConflictError: The viewer owns the chat, or is already accepted, invited
            or requested.
    """
    with transaction(db):
        exists = db.scalar(select(HushChat.id).where(HushChat.id == chat_id))
        if exists is None:
            raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")

        existing = _membership(db, chat_id, viewer_id)
        if existing is not None and existing.role == HushRole.owner.value:
            raise ConflictError(
                ApiErrorCode.E_CANNOT_REQUEST_JOIN, "The chat owner cannot request to join"
            )
        if existing is not None and not can_request_join(existing.status):
            raise ConflictError(ApiErrorCode.E_CANNOT_REQUEST_JOIN, "Cannot request join")

        profile = identity.get_profile(db, viewer_id)
        _upsert_membership(
            db,
            chat_id,
            viewer_id,
            HushMemberStatus.requested.value,
            profile.username if profile else None,
        )
        row = _membership(db, chat_id, viewer_id)
        if row is None or row.status != HushMemberStatus.requested.value:
            raise ConflictError(ApiErrorCode.E_CANNOT_REQUEST_JOIN, "Cannot request join")

    logger.info("hush_join_requested", chat_id=str(chat_id))
    return HushMembershipOut(chat_id=chat_id, user_id=viewer_id, role=row.role, status=row.status)


def resolve_join_request(
    db: Session, viewer_id: UUID, chat_id: UUID, member_user_id: UUID, accept: bool
) -> HushMembershipOut:
    """Owner accepts or declines a pending join request.

    Raises:
        ForbiddenError: The viewer is not the accepted owner.
        NotFoundError: The user has no row in this chat.
        ConflictError: The user's row is not in requested.
    """
    new_status = HushMemberStatus.accepted.value if accept else HushMemberStatus.declined.value

    with transaction(db):
        _require_owner(db, chat_id, viewer_id)

        row = _membership(db, chat_id, member_user_id)
        if row is None:
            raise NotFoundError(ApiErrorCode.E_MEMBERSHIP_NOT_FOUND, "Join request not found")
        if row.status != HushMemberStatus.requested.value:
            raise ConflictError(ApiErrorCode.E_REQUEST_NOT_PENDING, "Join request is not pending")

        if not _set_status(
            db, chat_id, member_user_id, HushMemberStatus.requested.value, new_status
        ):
            raise ConflictError(ApiErrorCode.E_REQUEST_NOT_PENDING, "Join request is not pending")

    logger.info(
        "hush_join_request_resolved",
        chat_id=str(chat_id),
        member_id=str(member_user_id),
        status=new_status,
    )
    return HushMembershipOut(
        chat_id=chat_id, user_id=member_user_id, role=row.role, status=new_status
    )


def respond_hush_invite(
    db: Session, viewer_id: UUID, chat_id: UUID, accept: bool
) -> HushMembershipOut:
    """Accept or decline an invitation addressed to the viewer.

    Raises:
        NotFoundError: The viewer has no row in this chat.
        ConflictError: The viewer's row is not in invited.
    """
    new_status = HushMemberStatus.accepted.value if accept else HushMemberStatus.declined.value

    with transaction(db):
        row = _membership(db, chat_id, viewer_id)
        if row is None:
            raise NotFoundError(ApiErrorCode.E_MEMBERSHIP_NOT_FOUND, "Invite not found")
        if row.status != HushMemberStatus.invited.value:
            raise ConflictError(ApiErrorCode.E_INVITE_NOT_PENDING, "Invite is not pending")

        if not _set_status(db, chat_id, viewer_id, HushMemberStatus.invited.value, new_status):
            raise ConflictError(ApiErrorCode.E_INVITE_NOT_PENDING, "Invite is not pending")

    logger.info("hush_invite_answered", chat_id=str(chat_id), status=new_status)
    return HushMembershipOut(chat_id=chat_id, user_id=viewer_id, role=row.role, status=new_status)


def leave_hush(db: Session, viewer_id: UUID, chat_id: UUID) -> HushLeaveOut:
    """Leave a chat. The chat closes if the owner leaves with at most two active members.

    The active count is taken before the viewer's row changes.

    Raises:
        NotFoundError: The viewer has no row in this chat.
    """
    with transaction(db):
        row = _membership(db, chat_id, viewer_id)
        if row is None:
            raise NotFoundError(ApiErrorCode.E_MEMBERSHIP_NOT_FOUND, "Membership not found")

        active_count = db.scalar(
            select(func.count())
            .select_from(HushMembership)
            .where(
                HushMembership.chat_id == chat_id,
                HushMembership.status.not_in(INACTIVE_STATUSES),
            )
        )

        db.execute(
            update(HushMembership)
            .where(HushMembership.chat_id == chat_id, HushMembership.user_id == viewer_id)
            .values(status=HushMemberStatus.left.value)
        )

        chat_closed = False
        if row.role == HushRole.owner.value and active_count <= 2:
            db.execute(
                update(HushChat)
                .where(HushChat.id == chat_id)
                .values(status=HushChatStatus.closed.value)
            )
            chat_closed = True

    logger.info("hush_member_left", chat_id=str(chat_id), chat_closed=chat_closed)
    if chat_closed:
        logger.info("hush_chat_closed", chat_id=str(chat_id), active_before_leave=active_count)
    return HushLeaveOut(chat_id=chat_id, chat_closed=chat_closed)


def remove_hush_member(
    db: Session, viewer_id: UUID, chat_id: UUID, target_user_id: UUID
) -> HushMembershipOut:
    """Owner removes a member.

    Raises:
        InvalidRequestError: The target is the viewer.
        ForbiddenError: The viewer is not the accepted owner.
        NotFoundError: The target has no row in this chat.
    """
    if target_user_id == viewer_id:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_TARGET, "Cannot remove yourself")

    with transaction(db):
        _require_owner(db, chat_id, viewer_id)

        row = _membership(db, chat_id, target_user_id)
        if row is None:
            raise NotFoundError(ApiErrorCode.E_MEMBERSHIP_NOT_FOUND, "Member not found")

        db.execute(
            update(HushMembership)
            .where(HushMembership.chat_id == chat_id, HushMembership.user_id == target_user_id)
            .values(status=HushMemberStatus.removed.value)
        )

    logger.info("hush_member_removed", chat_id=str(chat_id), target_id=str(target_user_id))
    return HushMembershipOut(
        chat_id=chat_id,
        user_id=target_user_id,
        role=row.role,
        status=HushMemberStatus.removed.value,
    )


# =============================================================================
# Messages
# =============================================================================


def list_hush_messages(
    db: Session, viewer_id: UUID, chat_id: UUID, limit: int | None = None
) -> list[HushMessageOut]:
    """List messages oldest first. Accepted members only.

    Each message carries the sender's cached display name, else the current
    username, else a placeholder.

    Raises:
        ForbiddenError: The viewer is not an accepted member.
    """
    limit = clamp_limit(limit)
    _require_accepted_member(db, chat_id, viewer_id)

    rows = db.execute(
        select(
            HushMessage.id,
            HushMessage.chat_id,
            HushMessage.user_id,
            HushMessage.content,
            HushMessage.created_at,
            HushMembership.display_name,
            User.username,
        )
        .outerjoin(
            HushMembership,
            and_(
                HushMembership.chat_id == HushMessage.chat_id,
                HushMembership.user_id == HushMessage.user_id,
            ),
        )
        .outerjoin(User, User.id == HushMessage.user_id)
        .where(HushMessage.chat_id == chat_id)
        .order_by(HushMessage.created_at.asc(), HushMessage.id.asc())
        .limit(limit)
    ).all()

    return [
        HushMessageOut(
            id=row.id,
            chat_id=row.chat_id,
            user_id=row.user_id,
            username=row.display_name or row.username or UNKNOWN_NAME,
            content=row.content,
            created_at=row.created_at,
        )
        for row in rows
    ]


def send_hush_message(
    db: Session, viewer_id: UUID, chat_id: UUID, content: str
) -> HushMessageOut:
    """Post a message. Accepted members only; content trimmed and truncated to 2000 chars.

    Raises:
        InvalidRequestError: Content empty after trimming.
        ForbiddenError: The viewer is not an accepted member.
    """
    text = normalize_content(content)

    with transaction(db):
        row = _membership(db, chat_id, viewer_id)
        if row is None or row.status != HushMemberStatus.accepted.value:
            raise ForbiddenError(ApiErrorCode.E_NOT_CHAT_MEMBER, "Not a member of this chat")

        message = HushMessage(
            chat_id=chat_id, user_id=viewer_id, content=text, created_at=utcnow()
        )
        db.add(message)
        db.flush()

    name = row.display_name
    if not name:
        profile = identity.get_profile(db, viewer_id)
        name = profile.username if profile else UNKNOWN_NAME

    return HushMessageOut(
        id=message.id,
        chat_id=chat_id,
        user_id=viewer_id,
        username=name,
        content=message.content,
        created_at=message.created_at,
    )
