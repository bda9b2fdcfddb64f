from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class NPC(Base):
    __tablename__ = "npcs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    npc_id: Mapped[str | None] = mapped_column(String(120))
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    role: Mapped[str | None] = mapped_column(String(160))
    sheet_content: Mapped[str | None] = mapped_column(Text)
    temperament_json: Mapped[list | None] = mapped_column(JSONB)
    speech_markers_json: Mapped[list | None] = mapped_column(JSONB)
    goals_json: Mapped[list | None] = mapped_column(JSONB)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Lore(Base):
    __tablename__ = "lore"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    world_name: Mapped[str] = mapped_column(String(160), nullable=False)
    version: Mapped[str] = mapped_column(String(40), nullable=False, default="1.0")
    content: Mapped[str | None] = mapped_column(Text)
    factions_json: Mapped[list | None] = mapped_column(JSONB)
    magic_tech: Mapped[str | None] = mapped_column(Text)
    laws_taboos_json: Mapped[list | None] = mapped_column(JSONB)
    canon_rules_json: Mapped[list | None] = mapped_column(JSONB)
    indexed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class CanonAnswer(Base):
    __tablename__ = "canon_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    npc_id: Mapped[int] = mapped_column(ForeignKey("npcs.id"), nullable=False)
    intent: Mapped[str] = mapped_column(String(120), nullable=False)
    pattern_examples_json: Mapped[list | None] = mapped_column(JSONB)
    reply: Mapped[str] = mapped_column(Text, nullable=False)
    stage_directions: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="other")
    priority: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Quest(Base):
    __tablename__ = "quests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quest_id: Mapped[str | None] = mapped_column(String(120))
    npc_id: Mapped[int] = mapped_column(ForeignKey("npcs.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    success_condition: Mapped[str | None] = mapped_column(Text)
    reward: Mapped[str | None] = mapped_column(Text)
    hints_json: Mapped[list | None] = mapped_column(JSONB)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[str] = mapped_column(String(120), nullable=False)
    npc_id: Mapped[int | None] = mapped_column(ForeignKey("npcs.id"))
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)
    intent_matched: Mapped[str | None] = mapped_column(String(120))
    used_canon: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class DialogMemory(Base):
    __tablename__ = "dialog_memory"
    __table_args__ = (
        UniqueConstraint("npc_id", "player_id", name="uq_dialog_memory_npc_player"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    npc_id: Mapped[int] = mapped_column(ForeignKey("npcs.id"), nullable=False)
    player_id: Mapped[str] = mapped_column(String(120), nullable=False)
    facts_json: Mapped[list | None] = mapped_column(JSONB)
    reputation_json: Mapped[dict | None] = mapped_column(JSONB)
    quest_states_json: Mapped[dict | None] = mapped_column(JSONB)
    current_emotion: Mapped[str | None] = mapped_column(String(80))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
