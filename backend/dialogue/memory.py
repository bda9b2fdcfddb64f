from __future__ import annotations

from models import DialogMemory


def find_memory(db, npc_id: int, player_id: str) -> DialogMemory | None:
    return db.query(DialogMemory).filter_by(npc_id=npc_id, player_id=player_id).first()


def upsert_memory(
    db,
    npc_id: int,
    player_id: str,
    *,
    facts: list[str] | None = None,
    reputation: dict | None = None,
    quest_states: dict | None = None,
    current_emotion: str | None = None,
) -> DialogMemory:
    memory = find_memory(db, npc_id, player_id)
    if memory is None:
        memory = DialogMemory(
            npc_id=npc_id,
            player_id=player_id,
            facts_json=[],
            reputation_json={},
            quest_states_json={},
        )
        db.add(memory)
    if facts is not None:
        memory.facts_json = list(facts)
    if reputation is not None:
        memory.reputation_json = dict(reputation)
    if quest_states is not None:
        memory.quest_states_json = dict(quest_states)
    if current_emotion is not None:
        memory.current_emotion = current_emotion or None
    return memory


def memory_payload(memory: DialogMemory) -> dict:
    return {
        "id": memory.id,
        "npc_id": memory.npc_id,
        "player_id": memory.player_id,
        "facts": memory.facts_json or [],
        "reputation": memory.reputation_json or {},
        "quest_states": memory.quest_states_json or {},
        "current_emotion": memory.current_emotion,
    }
