from __future__ import annotations

import json

from models import DialogMemory, NPC

PERSONA_RULES = (
    "IMPORTANT:\n"
    "- Answer ONLY as the character, in their own style\n"
    "- Do NOT mention the modern world, the internet or technology\n"
    "- Keep the answer short (1-3 paragraphs)\n"
    "- Follow the character's temperament and manners"
)


def _joined(values: list | None) -> str:
    return ", ".join(str(value) for value in values or [])


def _memory_line(memory: DialogMemory | None) -> str:
    if memory is None:
        return ""
    facts = memory.facts_json or []
    return f"MEMORY OF THE PLAYER: {json.dumps(facts, ensure_ascii=False)}"


def build_context_prompt(
    npc: NPC,
    player_message: str,
    memory: DialogMemory | None = None,
) -> str:
    sections = [
        f'You are the NPC "{npc.name}" ({npc.role or ""}).',
        f"CHARACTER SHEET:\n{npc.sheet_content or ''}",
        f"SPEECH MARKERS: {_joined(npc.speech_markers_json)}\n"
        f"TEMPERAMENT: {_joined(npc.temperament_json)}",
        _memory_line(memory),
        PERSONA_RULES,
        f'Player message: "{player_message}"',
        f"Answer as {npc.name}:",
    ]
    return "\n\n".join(section for section in sections if section)
