from __future__ import annotations

from collections import Counter
from typing import Iterable

from models import CanonAnswer, ChatMessage, NPC, Quest

TOP_INTENT_LIMIT = 10
UNKNOWN_NPC_NAME = "Unknown"


def _ranked(counter: Counter) -> list[tuple[str, int]]:
    # Stable on first appearance for equal counts.
    return sorted(counter.items(), key=lambda item: item[1], reverse=True)


def canon_hit_rate(canon_usage: int, npc_messages: int) -> float:
    if npc_messages <= 0:
        return 0
    return round(canon_usage / npc_messages * 100, 1)


def build_dashboard(
    messages: Iterable[ChatMessage],
    canon_answers: Iterable[CanonAnswer],
    npcs: Iterable[NPC],
    quests: Iterable[Quest],
) -> dict:
    messages = list(messages)
    npcs = list(npcs)
    canon_count = len(list(canon_answers))
    quest_count = len(list(quests))
    names = {npc.id: npc.name for npc in npcs}

    npc_messages = sum(1 for message in messages if message.sender == "npc")
    canon_usage = sum(1 for message in messages if message.used_canon)

    intent_usage = Counter(
        message.intent_matched for message in messages if message.intent_matched
    )
    npc_activity = Counter(
        names.get(message.npc_id) or UNKNOWN_NPC_NAME
        for message in messages
        if message.npc_id
    )

    return {
        "total_messages": len(messages),
        "npc_messages": npc_messages,
        "canon_usage": canon_usage,
        "canon_hit_rate": canon_hit_rate(canon_usage, npc_messages),
        "intent_usage": dict(intent_usage),
        "top_intents": [
            {"intent": intent, "count": count}
            for intent, count in _ranked(intent_usage)[:TOP_INTENT_LIMIT]
        ],
        "npc_activity": [
            {"name": name, "count": count} for name, count in _ranked(npc_activity)
        ],
        "canon_vs_generated": {
            "canonical": canon_usage,
            "generated": npc_messages - canon_usage,
        },
        "active_npcs": sum(1 for npc in npcs if npc.active),
        "total_quests": quest_count,
        "total_canon_answers": canon_count,
        "canon_per_npc": round(canon_count / len(npcs), 1) if npcs else 0,
        "unique_intents": len(intent_usage),
    }
