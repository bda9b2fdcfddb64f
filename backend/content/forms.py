from __future__ import annotations

import math
from typing import Any, Iterable

CANON_CATEGORIES = (
    "greeting",
    "farewell",
    "quest",
    "location",
    "trade",
    "lore",
    "meta",
    "other",
)
DEFAULT_CATEGORY = "other"

QUEST_DIFFICULTIES = ("easy", "medium", "hard")
DEFAULT_DIFFICULTY = "medium"

DEFAULT_PRIORITY = 1.0
UNKNOWN_NPC_LABEL = "Unknown NPC"


class ContentError(ValueError):
    pass


def split_list(value: str | Iterable[Any] | None, separator: str = ",") -> list[str]:
    """Normalise a console list field.

    The editor sends list fields either as a JSON array or as one string
    separated by ``separator``. Items are trimmed and empty items dropped.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(separator)
    else:
        items = [str(item) for item in value if item is not None]
    return [item.strip() for item in items if item.strip()]


def parse_priority(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_PRIORITY
    try:
        priority = float(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY
    if math.isnan(priority) or priority == 0:
        return DEFAULT_PRIORITY
    return priority


def normalize_category(value: str | None) -> str:
    category = (value or "").strip().lower() or DEFAULT_CATEGORY
    if category not in CANON_CATEGORIES:
        raise ContentError("Unsupported canon category")
    return category


def normalize_difficulty(value: str | None) -> str:
    difficulty = (value or "").strip().lower() or DEFAULT_DIFFICULTY
    if difficulty not in QUEST_DIFFICULTIES:
        raise ContentError("Unsupported quest difficulty")
    return difficulty


def group_by_npc(records: Iterable[Any], npcs: Iterable[Any]) -> dict[str, list[Any]]:
    names = {npc.id: npc.name for npc in npcs}
    grouped: dict[str, list[Any]] = {}
    for record in records:
        key = names.get(record.npc_id, UNKNOWN_NPC_LABEL)
        grouped.setdefault(key, []).append(record)
    return grouped
