"""Relationship schema - users, touch relations, hush chats, direct channels, orders

Revision ID: 0001
Revises:
Create Date: 2026-10-16

Column types are portable (sa.Uuid, timezone-aware DateTime) so the same
revision runs on PostgreSQL and on the SQLite files used by tests.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# BIGSERIAL on PostgreSQL, rowid alias on SQLite
BigIntId = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    # ==========================================================================
    # touch_relations table
    # ==========================================================================
    op.create_table(
        "touch_relations",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("requested_id", sa.Uuid(), nullable=False),
        sa.Column("pair_key", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["requested_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("pair_key", name="uq_touch_relations_pair_key"),
        sa.CheckConstraint("requester_id <> requested_id", name="ck_touch_relations_distinct"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')",
            name="ck_touch_relations_status",
        ),
    )
    op.create_index("ix_touch_relations_requester", "touch_relations", ["requester_id"])
    op.create_index("ix_touch_relations_requested", "touch_relations", ["requested_id"])

    # ==========================================================================
    # touch_orders table
    # ==========================================================================
    op.create_table(
        "touch_orders",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("owner_user_id", sa.Uuid(), nullable=False),
        sa.Column("contact_user_id", sa.Uuid(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "owner_user_id", "contact_user_id", name="uq_touch_orders_owner_contact"
        ),
        sa.CheckConstraint("owner_user_id <> contact_user_id", name="ck_touch_orders_distinct"),
    )

    # ==========================================================================
    # hush_chats / hush_memberships / hush_messages
    # ==========================================================================
    op.create_table(
        "hush_chats",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("status IN ('open', 'closed')", name="ck_hush_chats_status"),
    )

    op.create_table(
        "hush_memberships",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("chat_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chat_id"], ["hush_chats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("chat_id", "user_id", name="uq_hush_memberships_chat_user"),
        sa.CheckConstraint("role IN ('owner', 'member')", name="ck_hush_memberships_role"),
        sa.CheckConstraint(
            "status IN ('invited', 'requested', 'accepted', 'declined', 'left', 'removed')",
            name="ck_hush_memberships_status",
        ),
    )
    op.create_index("ix_hush_memberships_user", "hush_memberships", ["user_id"])

    op.create_table(
        "hush_messages",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("chat_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chat_id"], ["hush_chats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "length(content) BETWEEN 1 AND 2000", name="ck_hush_messages_content_length"
        ),
    )
    op.create_index(
        "ix_hush_messages_chat_created", "hush_messages", ["chat_id", "created_at"]
    )

    # ==========================================================================
    # direct_channels / direct_messages / direct_channel_orders
    # ==========================================================================
    op.create_table(
        "direct_channels",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("participant_low", sa.Uuid(), nullable=False),
        sa.Column("participant_high", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["participant_low"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["participant_high"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "participant_low", "participant_high", name="uq_direct_channels_participants"
        ),
        sa.CheckConstraint(
            "participant_low <> participant_high", name="ck_direct_channels_distinct"
        ),
    )
    op.create_index("ix_direct_channels_high", "direct_channels", ["participant_high"])

    op.create_table(
        "direct_messages",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("channel_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["channel_id"], ["direct_channels.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "length(content) BETWEEN 1 AND 2000", name="ck_direct_messages_content_length"
        ),
    )
    op.create_index(
        "ix_direct_messages_channel_created", "direct_messages", ["channel_id", "created_at"]
    )

    op.create_table(
        "direct_channel_orders",
        sa.Column("id", BigIntId, autoincrement=True, nullable=False),
        sa.Column("owner_user_id", sa.Uuid(), nullable=False),
        sa.Column("channel_id", sa.Uuid(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["channel_id"], ["direct_channels.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "owner_user_id", "channel_id", name="uq_direct_channel_orders_owner_channel"
        ),
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("direct_channel_orders")
    op.drop_index("ix_direct_messages_channel_created", table_name="direct_messages")
    op.drop_table("direct_messages")
    op.drop_index("ix_direct_channels_high", table_name="direct_channels")
    op.drop_table("direct_channels")
    op.drop_index("ix_hush_messages_chat_created", table_name="hush_messages")
    op.drop_table("hush_messages")
    op.drop_index("ix_hush_memberships_user", table_name="hush_memberships")
    op.drop_table("hush_memberships")
    op.drop_table("hush_chats")
    op.drop_table("touch_orders")
    op.drop_index("ix_touch_relations_requested", table_name="touch_relations")
    op.drop_index("ix_touch_relations_requester", table_name="touch_relations")
    op.drop_table("touch_relations")
    op.drop_table("users")
