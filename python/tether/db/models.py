"""SQLAlchemy ORM models for Tether.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Status and role columns are TEXT guarded by CHECK constraints; the Python
enums below are the canonical value sets used by the service layer.
Column types are portable so the schema can be created on PostgreSQL
(production) and SQLite (tests).
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite
BigIntId = BigInteger().with_variant(Integer, "sqlite")
# Largest value a BigIntId column can hold
MAX_BIGINT_ID = 2**63 - 1


def utcnow() -> datetime:
    """Timezone-aware current time used for column defaults and stamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class TouchStatus(str, PyEnum):
    """Touch relation lifecycle states.

    States:
        pending: Requested, waiting on the requested party
        accepted: Both sides confirmed
        declined: Requested party declined; either side may reopen
    """

    pending = "pending"
    accepted = "accepted"
    declined = "declined"


class HushChatStatus(str, PyEnum):
    """Hush chat lifecycle states."""

    open = "open"
    closed = "closed"


class HushRole(str, PyEnum):
    """Roles a user can have in a hush chat."""

    owner = "owner"
    member = "member"


class HushMemberStatus(str, PyEnum):
    """Hush membership states.

    declined, left and removed are terminal in the sense that nothing moves a
    row out of them automatically; a fresh invite or join request re-enters.
    """

    invited = "invited"
    requested = "requested"
    accepted = "accepted"
    declined = "declined"
    left = "left"
    removed = "removed"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User profile.

    Owned by the identity provider; the core only reads it.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class TouchRelation(Base):
    """Pairwise keep-in-touch relation, one row per unordered user pair."""

    __tablename__ = "touch_relations"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    requester_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    requested_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # "<low>:<high>" of the two user ids; the uniqueness key for the pair
    pair_key: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=TouchStatus.pending.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("pair_key", name="uq_touch_relations_pair_key"),
        CheckConstraint("requester_id <> requested_id", name="ck_touch_relations_distinct"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')",
            name="ck_touch_relations_status",
        ),
        Index("ix_touch_relations_requester", "requester_id"),
        Index("ix_touch_relations_requested", "requested_id"),
    )


class TouchOrderEntry(Base):
    """Owner's explicit sort position for one accepted contact."""

    __tablename__ = "touch_orders"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    contact_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("owner_user_id", "contact_user_id", name="uq_touch_orders_owner_contact"),
        CheckConstraint("owner_user_id <> contact_user_id", name="ck_touch_orders_distinct"),
    )


class HushChat(Base):
    """Owner-managed private group chat."""

    __tablename__ = "hush_chats"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    created_by: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default=HushChatStatus.open.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('open', 'closed')", name="ck_hush_chats_status"),
    )


class HushMembership(Base):
    """A user's role and status in one hush chat. Never hard-deleted."""

    __tablename__ = "hush_memberships"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    chat_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("hush_chats.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(Text, nullable=False, default=HushRole.member.value)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_hush_memberships_chat_user"),
        CheckConstraint("role IN ('owner', 'member')", name="ck_hush_memberships_role"),
        CheckConstraint(
            "status IN ('invited', 'requested', 'accepted', 'declined', 'left', 'removed')",
            name="ck_hush_memberships_status",
        ),
        Index("ix_hush_memberships_user", "user_id"),
    )


class HushMessage(Base):
    """Message posted by an accepted member of a hush chat."""

    __tablename__ = "hush_messages"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    chat_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("hush_chats.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "length(content) BETWEEN 1 AND 2000", name="ck_hush_messages_content_length"
        ),
        Index("ix_hush_messages_chat_created", "chat_id", "created_at"),
    )


class DirectChannel(Base):
    """Direct-message channel for one canonically ordered user pair."""

    __tablename__ = "direct_channels"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    participant_low: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    participant_high: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "participant_low", "participant_high", name="uq_direct_channels_participants"
        ),
        CheckConstraint(
            "participant_low <> participant_high", name="ck_direct_channels_distinct"
        ),
        Index("ix_direct_channels_high", "participant_high"),
    )


class DirectMessage(Base):
    """Message in a direct channel."""

    __tablename__ = "direct_messages"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    channel_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("direct_channels.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "length(content) BETWEEN 1 AND 2000", name="ck_direct_messages_content_length"
        ),
        Index("ix_direct_messages_channel_created", "channel_id", "created_at"),
    )


class DirectChannelOrderEntry(Base):
    """Owner's explicit sort position for one direct channel."""

    __tablename__ = "direct_channel_orders"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    channel_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("direct_channels.id", ondelete="CASCADE"), nullable=False
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "owner_user_id", "channel_id", name="uq_direct_channel_orders_owner_channel"
        ),
    )
