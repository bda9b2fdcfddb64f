from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from config import settings
from db import SessionLocal
from dialogue.intents import find_intent_match
from dialogue.memory import find_memory
from dialogue.prompts import build_context_prompt
from llm.client import OllamaClient
from models import CanonAnswer, ChatMessage, DialogMemory, NPC

log = logging.getLogger(__name__)


class ChatError(ValueError):
    pass


class NPCNotFoundError(ChatError):
    pass


@dataclass
class NPCResponse:
    reply: str
    intent: str | None
    used_canon: bool


@dataclass
class ChatExchange:
    player_message: ChatMessage
    npc_message: ChatMessage
    response: NPCResponse


def resolve_npc_response(
    npc: NPC,
    player_message: str,
    canon_answers: Iterable[CanonAnswer],
    memory: DialogMemory | None,
    client: OllamaClient,
) -> NPCResponse:
    canon = find_intent_match(player_message, canon_answers)
    if canon is not None:
        log.info("canon_match npc=%s intent=%s", npc.id, canon.intent)
        return NPCResponse(reply=canon.reply, intent=canon.intent, used_canon=True)

    log.info("canon_miss npc=%s, generating reply", npc.id)
    prompt = build_context_prompt(npc, player_message, memory)
    reply = client.generate_npc_reply(prompt)
    return NPCResponse(reply=reply, intent=None, used_canon=False)


def send_player_message(
    player_id: str,
    npc_id: int,
    text: str,
    client: OllamaClient | None = None,
) -> ChatExchange:
    if not text or not text.strip():
        raise ChatError("Message must not be empty.")
    client = client or OllamaClient()
    with SessionLocal() as db:
        npc = db.get(NPC, npc_id)
        if npc is None:
            raise NPCNotFoundError("NPC not found.")
        if not npc.active:
            raise ChatError("NPC is not active.")

        player_message = ChatMessage(
            player_id=player_id,
            npc_id=npc.id,
            message=text,
            sender="player",
            used_canon=False,
            timestamp=_now(),
        )
        db.add(player_message)
        db.commit()

        canon_answers = (
            db.query(CanonAnswer)
            .filter_by(npc_id=npc.id)
            .order_by(CanonAnswer.id.asc())
            .all()
        )
        memory = find_memory(db, npc.id, player_id)
        response = resolve_npc_response(npc, text, canon_answers, memory, client)

        npc_message = ChatMessage(
            player_id=player_id,
            npc_id=npc.id,
            message=response.reply,
            sender="npc",
            intent_matched=response.intent,
            used_canon=response.used_canon,
            timestamp=_now(),
        )
        db.add(npc_message)
        db.commit()
        db.refresh(player_message)
        db.refresh(npc_message)
        return ChatExchange(
            player_message=player_message,
            npc_message=npc_message,
            response=response,
        )


def list_messages(db, player_id: str, npc_id: int, limit: int | None = None) -> list[ChatMessage]:
    """Newest first, never more than the configured history limit."""
    cap = settings.chat_history_limit
    limit = cap if limit is None else min(max(limit, 1), cap)
    return (
        db.query(ChatMessage)
        .filter_by(npc_id=npc_id, player_id=player_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
        .all()
    )


def message_payload(message: ChatMessage) -> dict:
    return {
        "id": message.id,
        "player_id": message.player_id,
        "npc_id": message.npc_id,
        "message": message.message,
        "sender": message.sender,
        "intent_matched": message.intent_matched,
        "used_canon": bool(message.used_canon),
        "timestamp": message.timestamp.isoformat() if message.timestamp else None,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def _now() -> datetime:
    return datetime.now(timezone.utc)
