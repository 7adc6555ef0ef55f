"""thread participants table and message publish marker

Revision ID: 8c3f2a7d4e61
Revises: 5b7e1c2d9a10
Create Date: 2026-10-19 16:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "8c3f2a7d4e61"
down_revision: Union[str, None] = "5b7e1c2d9a10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Move participants to their own table; add messages.published_at."""
    op.create_table(
        "thread_participants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("thread_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(["thread_id"], ["threads.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("thread_id", "user_id", name="uq_thread_participants"),
    )
    op.create_index(
        "ix_thread_participants_user_id", "thread_participants", ["user_id"]
    )
    op.execute(
        """
        INSERT INTO thread_participants (thread_id, user_id)
        SELECT t.id, p.user_id
        FROM threads t
        CROSS JOIN LATERAL jsonb_array_elements_text(t.participants) AS p(user_id)
        ON CONFLICT DO NOTHING
        """
    )
    op.drop_column("threads", "participants")

    op.add_column("messages", sa.Column("published_at", sa.DateTime(), nullable=True))
    # Rows written before the marker existed were published inline.
    op.execute("UPDATE messages SET published_at = created_at")
    op.create_index("ix_messages_published_at", "messages", ["published_at"])


def downgrade() -> None:
    """Restore the participants JSONB column; drop the publish marker."""
    op.drop_index("ix_messages_published_at", table_name="messages")
    op.drop_column("messages", "published_at")

    op.add_column(
        "threads",
        sa.Column(
            "participants",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
    )
    op.execute(
        """
        UPDATE threads t
        SET participants = sub.users
        FROM (
            SELECT thread_id, jsonb_agg(user_id ORDER BY id) AS users
            FROM thread_participants
            GROUP BY thread_id
        ) sub
        WHERE sub.thread_id = t.id
        """
    )
    op.drop_index("ix_thread_participants_user_id", table_name="thread_participants")
    op.drop_table("thread_participants")
