"""Per-user ordering preferences.

Shared by touch contacts and direct chats. Order tables have an
owner_user_id column, a key column (the ordered thing) and sort_order.
Writes are delete-all-then-insert; callers prune the key list against the
live relation set before calling replace_order, inside their transaction.
"""

import sys
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from tether.db.models import utcnow

# Sort position for keys without an explicit order entry
UNORDERED = sys.maxsize


def dedupe_ids(ids: Iterable[UUID]) -> list[UUID]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[UUID] = set()
    result = []
    for value in ids:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def load_ranks(db: Session, key_column: Any, owner_id: UUID) -> dict[UUID, int]:
    """Return {key: sort_order} for every entry the owner has written.

    Args:
        db: Database session.
        key_column: Mapped key attribute, e.g. TouchOrderEntry.contact_user_id.
        owner_id: Whose ordering to load.
    """
    model = key_column.class_
    rows = db.execute(
        select(key_column, model.sort_order).where(model.owner_user_id == owner_id)
    ).all()
    return {row[0]: row[1] for row in rows}


def replace_order(db: Session, key_column: Any, owner_id: UUID, ordered_keys: list[UUID]) -> None:
    """Replace the owner's entries with ranks 0..n-1 in the given order.

    An empty list clears the owner's ordering. Must run inside a transaction.
    """
    model = key_column.class_
    db.execute(delete(model).where(model.owner_user_id == owner_id))
    if not ordered_keys:
        return

    now = utcnow()
    db.execute(
        insert(model),
        [
            {
                "owner_user_id": owner_id,
                key_column.key: key,
                "sort_order": index,
                "updated_at": now,
            }
            for index, key in enumerate(ordered_keys)
        ],
    )


def rank_of(ranks: dict[UUID, int], key: UUID) -> int:
    """Sort position for a key; unordered keys sort after every ordered one."""
    return ranks.get(key, UNORDERED)
