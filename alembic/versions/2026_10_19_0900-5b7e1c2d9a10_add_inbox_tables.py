"""add inbox tables

Revision ID: 5b7e1c2d9a10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5b7e1c2d9a10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
    ]


def upgrade() -> None:
    """Upgrade schema: threads, messages, connected_accounts, vector_chunks."""
    op.create_table(
        "threads",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("owner_user_id", sa.String(length=128), nullable=False),
        sa.Column("contact_identifier", sa.String(length=320), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=True),
        sa.Column(
            "participants",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "message_count", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("last_message_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_user_id", "contact_identifier", name="uq_threads_owner_contact"
        ),
    )
    op.create_index("ix_threads_owner_user_id", "threads", ["owner_user_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("thread_id", sa.String(length=320), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("provider_message_id", sa.String(length=512), nullable=True),
        sa.Column("dedup_key", sa.String(length=512), nullable=True),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("provider", sa.String(length=64), nullable=True),
        sa.Column("subject", sa.String(length=1024), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("html_body", sa.Text(), nullable=True),
        sa.Column(
            "headers",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("send_result", postgresql.JSONB(), nullable=True),
        sa.Column("from_address", sa.String(length=320), nullable=True),
        sa.Column(
            "to_addresses",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "cc_addresses",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("owner_user_id", sa.String(length=128), nullable=False),
        sa.Column(
            "is_unread", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("thread_id", "timestamp", name="uq_messages_thread_ts"),
        sa.UniqueConstraint("thread_id", "dedup_key", name="uq_messages_thread_dedup"),
    )
    op.create_index("ix_messages_thread_id", "messages", ["thread_id"])
    op.create_index(
        "ix_messages_owner_user_thread", "messages", ["owner_user_id", "thread_id"]
    )

    op.create_table(
        "connected_accounts",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("address", sa.String(length=320), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "channel", "address", name="uq_connected_accounts_address"
        ),
    )
    op.create_index(
        "ix_connected_accounts_user_id", "connected_accounts", ["user_id"]
    )

    op.create_table(
        "vector_chunks",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("thread_id", sa.String(length=320), nullable=True),
        sa.Column("embedding", postgresql.JSONB(), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vector_chunks_event_id", "vector_chunks", ["event_id"])
    op.create_index("ix_vector_chunks_thread_id", "vector_chunks", ["thread_id"])


def downgrade() -> None:
    """Downgrade schema: drop inbox tables."""
    op.drop_index("ix_vector_chunks_thread_id", table_name="vector_chunks")
    op.drop_index("ix_vector_chunks_event_id", table_name="vector_chunks")
    op.drop_table("vector_chunks")
    op.drop_index("ix_connected_accounts_user_id", table_name="connected_accounts")
    op.drop_table("connected_accounts")
    op.drop_index("ix_messages_owner_user_thread", table_name="messages")
    op.drop_index("ix_messages_thread_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_threads_owner_user_id", table_name="threads")
    op.drop_table("threads")
