"""Database module for Tether.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from tether.db.engine import create_db_engine, get_engine
from tether.db.models import (
    Base,
    DirectChannel,
    DirectChannelOrderEntry,
    DirectMessage,
    HushChat,
    HushChatStatus,
    HushMemberStatus,
    HushMembership,
    HushMessage,
    HushRole,
    TouchOrderEntry,
    TouchRelation,
    TouchStatus,
    User,
)
from tether.db.session import get_db, transaction, upsert_insert

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    "upsert_insert",
    # Base
    "Base",
    # Enums
    "TouchStatus",
    "HushChatStatus",
    "HushRole",
    "HushMemberStatus",
    # Models
    "User",
    "TouchRelation",
    "TouchOrderEntry",
    "HushChat",
    "HushMembership",
    "HushMessage",
    "DirectChannel",
    "DirectMessage",
    "DirectChannelOrderEntry",
]
