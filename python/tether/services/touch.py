"""Touch relation service layer.

Owns the pairwise keep-in-touch state machine and the per-user contact order.

Invariants:
- At most one TouchRelation row per unordered pair. The row carries a
  canonical pair_key with a unique constraint; creation is an
  insert-or-ignore on that key, so racing first requests converge.
- Every transition is a conditional UPDATE guarded by the expected current
  status. A transition that matches no row re-reads the fresh state.
- Pair lookups match both (requester, requested) directions.

State machine (request from actor A to target B):
    (none)                  -> pending (requester A)
    accepted                -> accepted (no-op)
    pending, requester A    -> pending (no-op)
    pending, requester B    -> accepted (implicit accept)
    declined                -> pending (reopen, requester A)
"""

from uuid import UUID

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.orm import Session

from tether.db.models import (
    MAX_BIGINT_ID,
    TouchOrderEntry,
    TouchRelation,
    TouchStatus,
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
from tether.schemas.touch import (
    IncomingTouchRequestOut,
    TouchContactOut,
    TouchListOut,
    TouchOrderOut,
    TouchRemoveOut,
    TouchRequestOut,
    TouchRespondOut,
)
from tether.services import identity, ordering

logger = get_logger(__name__)

_RELATION_COLUMNS = (
    TouchRelation.id,
    TouchRelation.requester_id,
    TouchRelation.requested_id,
    TouchRelation.status,
)


def pair_key(user_a: UUID, user_b: UUID) -> str:
    """Canonical storage key for an unordered user pair."""
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


def pair_clause(user_a: UUID, user_b: UUID):
    """WHERE clause matching the pair's relation in either direction."""
    return or_(
        and_(TouchRelation.requester_id == user_a, TouchRelation.requested_id == user_b),
        and_(TouchRelation.requester_id == user_b, TouchRelation.requested_id == user_a),
    )


def is_in_touch(db: Session, user_a: UUID, user_b: UUID) -> bool:
    """Whether the two users share an accepted relation."""
    relation_id = db.scalar(
        select(TouchRelation.id).where(
            pair_clause(user_a, user_b),
            TouchRelation.status == TouchStatus.accepted.value,
        )
    )
    return relation_id is not None


# =============================================================================
# Transitions
# =============================================================================


def request_touch(db: Session, viewer_id: UUID, target_username: str) -> TouchRequestOut:
    """Ask a user (by username) to keep in touch, or advance an existing relation.

    Args:
        db: Database session.
        viewer_id: The requesting user.
        target_username: Username of the target; exact match, then case-insensitive.

    Returns:
        The relation id, target user id and resulting status.

    Raises:
        InvalidRequestError: Username empty, or the target is the viewer.
        NotFoundError: No user with that username.
    """
    username = (target_username or "").strip()
    if not username:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_REQUIRED, "Target username required")

    target_id = identity.find_user_id_by_username(db, username)
    if target_id is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    if target_id == viewer_id:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_TARGET, "Cannot request yourself")

    with transaction(db):
        now = utcnow()
        stmt = (
            upsert_insert(db, TouchRelation)
            .values(
                requester_id=viewer_id,
                requested_id=target_id,
                pair_key=pair_key(viewer_id, target_id),
                status=TouchStatus.pending.value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["pair_key"])
        )
        inserted = db.execute(stmt).rowcount == 1

        row = db.execute(
            select(*_RELATION_COLUMNS).where(pair_clause(viewer_id, target_id))
        ).first()
        if row is None:
            raise NotFoundError(ApiErrorCode.E_RELATION_NOT_FOUND, "Touch relation not found")

        if inserted:
            logger.info("touch_request_created", relation_id=row.id, target_id=str(target_id))
            status = TouchStatus.pending.value
        else:
            status = _advance_on_request(db, row, viewer_id, target_id)

    return TouchRequestOut(relation_id=row.id, user_id=target_id, status=status)


def _advance_on_request(db: Session, row, viewer_id: UUID, target_id: UUID) -> str:
    """Apply a repeated request to an existing relation row; return the new status."""
    if row.status == TouchStatus.accepted.value:
        return TouchStatus.accepted.value

    now = utcnow()

    if row.status == TouchStatus.pending.value:
        if row.requester_id == viewer_id:
            return TouchStatus.pending.value

        # The viewer was the requested party: requesting back accepts.
        result = db.execute(
            update(TouchRelation)
            .where(
                TouchRelation.id == row.id,
                TouchRelation.status == TouchStatus.pending.value,
                TouchRelation.requester_id == target_id,
            )
            .values(status=TouchStatus.accepted.value, responded_at=now, updated_at=now)
        )
        if result.rowcount == 1:
            logger.info("touch_request_accepted", relation_id=row.id, implicit=True)
            return TouchStatus.accepted.value
        return _current_status(db, row.id)

    # declined: reopen with the viewer as requester
    result = db.execute(
        update(TouchRelation)
        .where(
            TouchRelation.id == row.id,
            TouchRelation.status == TouchStatus.declined.value,
        )
        .values(
            requester_id=viewer_id,
            requested_id=target_id,
            status=TouchStatus.pending.value,
            responded_at=None,
            updated_at=now,
        )
    )
    if result.rowcount == 1:
        logger.info("touch_request_reopened", relation_id=row.id)
        return TouchStatus.pending.value
    return _current_status(db, row.id)


def _current_status(db: Session, relation_id: int) -> str:
    status = db.scalar(select(TouchRelation.status).where(TouchRelation.id == relation_id))
    if status is None:
        raise NotFoundError(ApiErrorCode.E_RELATION_NOT_FOUND, "Touch relation not found")
    return status


def respond_touch(db: Session, viewer_id: UUID, relation_id: int, accept: bool) -> TouchRespondOut:
    """Accept or decline an incoming touch request.

    Raises:
        InvalidRequestError: relation_id is not a positive BIGINT.
        NotFoundError: No such relation.
        ForbiddenError: The viewer is not the requested party.
        ConflictError: The relation is no longer pending.
    """
    if relation_id <= 0 or relation_id > MAX_BIGINT_ID:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Invalid request id")

    new_status = TouchStatus.accepted.value if accept else TouchStatus.declined.value

    with transaction(db):
        row = db.execute(
            select(*_RELATION_COLUMNS).where(TouchRelation.id == relation_id)
        ).first()
        if row is None:
            raise NotFoundError(ApiErrorCode.E_RELATION_NOT_FOUND, "Touch request not found")
        if row.requested_id != viewer_id:
            raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Only the requested user can respond")
        if row.status != TouchStatus.pending.value:
            raise ConflictError(
                ApiErrorCode.E_REQUEST_ALREADY_RESOLVED, "Touch request already resolved"
            )

        now = utcnow()
        result = db.execute(
            update(TouchRelation)
            .where(
                TouchRelation.id == relation_id,
                TouchRelation.status == TouchStatus.pending.value,
            )
            .values(status=new_status, responded_at=now, updated_at=now)
        )
        if result.rowcount != 1:
            raise ConflictError(
                ApiErrorCode.E_REQUEST_ALREADY_RESOLVED, "Touch request already resolved"
            )

    logger.info("touch_request_answered", relation_id=relation_id, status=new_status)
    return TouchRespondOut(relation_id=relation_id, status=new_status)


def remove_touch(db: Session, viewer_id: UUID, target_user_id: UUID) -> TouchRemoveOut:
    """Remove the relation with a user, whatever its status.

    Also drops both sides' order entries for the pair. Idempotent.

    Raises:
        InvalidRequestError: The target is the viewer.
    """
    if target_user_id == viewer_id:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_TARGET, "Cannot remove yourself")

    with transaction(db):
        result = db.execute(delete(TouchRelation).where(pair_clause(viewer_id, target_user_id)))
        db.execute(
            delete(TouchOrderEntry).where(
                or_(
                    and_(
                        TouchOrderEntry.owner_user_id == viewer_id,
                        TouchOrderEntry.contact_user_id == target_user_id,
                    ),
                    and_(
                        TouchOrderEntry.owner_user_id == target_user_id,
                        TouchOrderEntry.contact_user_id == viewer_id,
                    ),
                )
            )
        )

    removed = result.rowcount > 0
    if removed:
        logger.info("touch_relation_removed", target_id=str(target_user_id))
    return TouchRemoveOut(user_id=target_user_id, removed=removed)


# =============================================================================
# Views and ordering
# =============================================================================


def accepted_contact_ids(db: Session, viewer_id: UUID) -> set[UUID]:
    """Ids of every user in an accepted relation with the viewer."""
    rows = db.execute(
        select(TouchRelation.requester_id, TouchRelation.requested_id).where(
            TouchRelation.status == TouchStatus.accepted.value,
            or_(
                TouchRelation.requester_id == viewer_id,
                TouchRelation.requested_id == viewer_id,
            ),
        )
    ).all()
    return {
        row.requested_id if row.requester_id == viewer_id else row.requester_id for row in rows
    }


def list_touch(db: Session, viewer_id: UUID) -> TouchListOut:
    """List accepted contacts and incoming requests for the viewer.

    Contacts are ordered by the viewer's explicit order, unordered contacts
    last, ties broken by case-insensitive username. Incoming requests are
    ordered by case-insensitive username.
    """
    contact_ids = accepted_contact_ids(db, viewer_id)
    profiles = identity.get_profiles(db, contact_ids)
    ranks = ordering.load_ranks(db, TouchOrderEntry.contact_user_id, viewer_id)

    in_touch = [
        TouchContactOut(
            user_id=profile.user_id,
            username=profile.username,
            avatar_url=profile.avatar_url,
            sort_order=ranks.get(profile.user_id),
        )
        for profile in profiles.values()
    ]
    in_touch.sort(key=lambda c: (ordering.rank_of(ranks, c.user_id), c.username.casefold()))

    incoming_rows = db.execute(
        select(
            TouchRelation.id,
            TouchRelation.requester_id,
            TouchRelation.created_at,
            User.username,
            User.avatar_url,
        )
        .join(User, User.id == TouchRelation.requester_id)
        .where(
            TouchRelation.requested_id == viewer_id,
            TouchRelation.status == TouchStatus.pending.value,
        )
    ).all()
    incoming = sorted(
        (
            IncomingTouchRequestOut(
                id=row.id,
                user_id=row.requester_id,
                username=row.username,
                avatar_url=row.avatar_url,
                created_at=row.created_at,
            )
            for row in incoming_rows
        ),
        key=lambda r: r.username.casefold(),
    )

    return TouchListOut(in_touch=in_touch, incoming=incoming)


def set_touch_order(db: Session, viewer_id: UUID, ordered_user_ids: list[UUID]) -> TouchOrderOut:
    """Rewrite the viewer's contact order.

    Duplicates and users without an accepted relation are dropped; the rest
    get ranks 0..n-1. An empty list clears the order.
    """
    candidates = [uid for uid in ordering.dedupe_ids(ordered_user_ids) if uid != viewer_id]

    with transaction(db):
        accepted = accepted_contact_ids(db, viewer_id)
        kept = [uid for uid in candidates if uid in accepted]
        ordering.replace_order(db, TouchOrderEntry.contact_user_id, viewer_id, kept)

    if len(kept) != len(candidates):
        logger.info("touch_order_pruned", dropped=len(candidates) - len(kept))
    return TouchOrderOut(ordered_user_ids=kept)
