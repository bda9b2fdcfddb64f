from __future__ import annotations

from typing import Iterable

from models import CanonAnswer


def normalize_message(message: str | None) -> str:
    return (message or "").lower().strip()


def pattern_applies(needle: str, pattern: str | None) -> bool:
    candidate = (pattern or "").lower()
    if not candidate.strip() or not needle:
        return False
    return candidate in needle or needle in candidate


def find_intent_match(
    message: str | None,
    canon_answers: Iterable[CanonAnswer],
) -> CanonAnswer | None:
    """Return the first canon answer with a pattern matching ``message``.

    A pattern matches when the lower-cased, trimmed message contains it or
    when it contains the message. Canon answers and their patterns are
    checked in the order given.
    """
    needle = normalize_message(message)
    if not needle:
        return None
    for canon in canon_answers:
        for pattern in canon.pattern_examples_json or []:
            if pattern_applies(needle, pattern):
                return canon
    return None
