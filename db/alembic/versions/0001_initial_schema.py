"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "npcs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("npc_id", sa.String(length=120)),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("role", sa.String(length=160)),
        sa.Column("sheet_content", sa.Text),
        sa.Column("temperament_json", postgresql.JSONB),
        sa.Column("speech_markers_json", postgresql.JSONB),
        sa.Column("goals_json", postgresql.JSONB),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "lore",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("world_name", sa.String(length=160), nullable=False),
        sa.Column("version", sa.String(length=40), nullable=False, server_default="1.0"),
        sa.Column("content", sa.Text),
        sa.Column("factions_json", postgresql.JSONB),
        sa.Column("magic_tech", sa.Text),
        sa.Column("laws_taboos_json", postgresql.JSONB),
        sa.Column("canon_rules_json", postgresql.JSONB),
        sa.Column("indexed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "canon_answers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("npc_id", sa.Integer, sa.ForeignKey("npcs.id"), nullable=False),
        sa.Column("intent", sa.String(length=120), nullable=False),
        sa.Column("pattern_examples_json", postgresql.JSONB),
        sa.Column("reply", sa.Text, nullable=False),
        sa.Column("stage_directions", sa.Text),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="other"),
        sa.Column("priority", sa.Float, nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_canon_answers_npc_id", "canon_answers", ["npc_id"])

    op.create_table(
        "quests",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("quest_id", sa.String(length=120)),
        sa.Column("npc_id", sa.Integer, sa.ForeignKey("npcs.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("success_condition", sa.Text),
        sa.Column("reward", sa.Text),
        sa.Column("hints_json", postgresql.JSONB),
        sa.Column("difficulty", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("player_id", sa.String(length=120), nullable=False),
        sa.Column("npc_id", sa.Integer, sa.ForeignKey("npcs.id")),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("sender", sa.String(length=20), nullable=False),
        sa.Column("intent_matched", sa.String(length=120)),
        sa.Column("used_canon", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("timestamp", sa.DateTime(timezone=True)),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_chat_messages_player_npc",
        "chat_messages",
        ["player_id", "npc_id"],
    )

    op.create_table(
        "dialog_memory",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("npc_id", sa.Integer, sa.ForeignKey("npcs.id"), nullable=False),
        sa.Column("player_id", sa.String(length=120), nullable=False),
        sa.Column("facts_json", postgresql.JSONB),
        sa.Column("reputation_json", postgresql.JSONB),
        sa.Column("quest_states_json", postgresql.JSONB),
        sa.Column("current_emotion", sa.String(length=80)),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("npc_id", "player_id", name="uq_dialog_memory_npc_player"),
    )


def downgrade() -> None:
    op.drop_table("dialog_memory")
    op.drop_index("ix_chat_messages_player_npc", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_table("quests")
    op.drop_index("ix_canon_answers_npc_id", table_name="canon_answers")
    op.drop_table("canon_answers")
    op.drop_table("lore")
    op.drop_table("npcs")
