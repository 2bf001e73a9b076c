"""Initial schema — profiles, profile edges, matches and messages.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. profiles ─────────────────────────────────────────────────
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("display_name", sa.String(50), nullable=False),
        sa.Column("age", sa.Integer, nullable=False),
        sa.Column(
            "gender",
            sa.String,
            nullable=False,
            comment="male / female / non-binary / other",
        ),
        sa.Column(
            "interested_in",
            sa.String,
            nullable=False,
            server_default="everyone",
            comment="men / women / everyone",
        ),
        sa.Column("relationship_type", sa.String, nullable=False, server_default=""),
        sa.Column("looking_for", sa.String, nullable=False, server_default=""),
        sa.Column(
            "interests",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Up to 4 vocabulary interests",
        ),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("avatar_url", sa.String, nullable=True),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("activity_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("profile_completeness", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_premium", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("pref_age_min", sa.Integer, nullable=False, server_default="18"),
        sa.Column("pref_age_max", sa.Integer, nullable=False, server_default="100"),
        sa.Column(
            "pref_distance",
            sa.Float,
            nullable=False,
            server_default="50",
            comment="km",
        ),
        sa.Column("pref_relationship_type", sa.String, nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── 2. profile_edges (likes / super_likes / matches sets) ───────
    op.create_table(
        "profile_edges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "kind",
            sa.String,
            nullable=False,
            comment="likes / super_likes / matches",
        ),
        sa.Column(
            "target_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "kind", "target_id", name="uq_profile_edge"),
    )

    # ── 3. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "pair_key",
            sa.String,
            nullable=False,
            comment="'<user_a_id>:<user_b_id>'",
        ),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        sa.Column("last_message_text", sa.Text, nullable=True),
        sa.Column(
            "last_message_sender_id",
            postgresql.UUID(as_uuid=True),
            nullable=True,
            comment="NULL for system messages",
        ),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_message_seq", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("pair_key", name="uq_match_pair"),
        sa.CheckConstraint("user_a_id < user_b_id", name="ck_match_sorted_pair"),
    )
    op.create_index("ix_matches_user_a", "matches", ["user_a_id"])
    op.create_index("ix_matches_user_b", "matches", ["user_b_id"])

    # ── 4. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "match_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("seq", sa.Integer, nullable=False, comment="Per-match insertion order"),
        sa.Column(
            "sender_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "receiver_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_system", sa.Boolean, server_default="false", nullable=False),
        sa.Column("text", sa.String(1000), nullable=False),
        sa.Column("is_read", sa.Boolean, server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("match_id", "seq", name="uq_message_match_seq"),
    )
    op.create_index(
        "ix_messages_receiver_unread",
        "messages",
        ["match_id", "receiver_id", "is_read"],
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("ix_messages_receiver_unread", table_name="messages")
    op.drop_table("messages")

    op.drop_index("ix_matches_user_b", table_name="matches")
    op.drop_index("ix_matches_user_a", table_name="matches")
    op.drop_table("matches")

    op.drop_table("profile_edges")
    op.drop_table("profiles")
