import json
import sys
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))

from content.forms import (  # noqa: E402
    normalize_category,
    normalize_difficulty,
    parse_priority,
    split_list,
)
from db import get_session  # noqa: E402
from models import CanonAnswer, Lore, NPC, Quest  # noqa: E402

JSON_DIR = REPO_ROOT / "docs" / "jsons"


def load_json(file_name: str) -> Any | None:
    path = JSON_DIR / file_name
    if not path.exists():
        print(f"Missing {path}, skipping.")
        return None
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def seed_npcs(session) -> dict[str, NPC]:
    by_slug = {npc.npc_id: npc for npc in session.query(NPC).all() if npc.npc_id}
    data = load_json("npcs.json")
    if not isinstance(data, list):
        return by_slug
    for item in data:
        if not isinstance(item, dict) or "npc_id" not in item or item["npc_id"] in by_slug:
            continue
        npc = NPC(
            npc_id=item["npc_id"],
            name=item.get("name") or item["npc_id"],
            role=item.get("role"),
            sheet_content=item.get("sheet_content"),
            temperament_json=split_list(item.get("temperament")),
            speech_markers_json=split_list(item.get("speech_markers")),
            goals_json=split_list(item.get("goals")),
            active=item.get("active", True),
        )
        session.add(npc)
        by_slug[npc.npc_id] = npc
    session.flush()
    return by_slug


def seed_canon_answers(session, npcs: dict[str, NPC]) -> None:
    data = load_json("canon_answers.json")
    if not isinstance(data, list):
        return
    for item in data:
        if not isinstance(item, dict):
            continue
        npc = npcs.get(item.get("npc"))
        if npc is None or not item.get("intent") or not item.get("reply"):
            continue
        exists = session.query(CanonAnswer).filter_by(npc_id=npc.id, intent=item["intent"]).first()
        if exists:
            continue
        session.add(
            CanonAnswer(
                npc_id=npc.id,
                intent=item["intent"],
                pattern_examples_json=split_list(item.get("pattern_examples")),
                reply=item["reply"],
                stage_directions=item.get("stage_directions"),
                category=normalize_category(item.get("category")),
                priority=parse_priority(item.get("priority")),
            )
        )


def seed_quests(session, npcs: dict[str, NPC]) -> None:
    data = load_json("quests.json")
    if not isinstance(data, list):
        return
    for item in data:
        if not isinstance(item, dict) or not item.get("quest_id"):
            continue
        npc = npcs.get(item.get("npc"))
        if npc is None:
            continue
        if session.query(Quest).filter_by(quest_id=item["quest_id"]).first():
            continue
        session.add(
            Quest(
                quest_id=item["quest_id"],
                npc_id=npc.id,
                title=item.get("title") or item["quest_id"],
                description=item.get("description"),
                success_condition=item.get("success_condition"),
                reward=item.get("reward"),
                hints_json=split_list(item.get("hints"), "\n"),
                difficulty=normalize_difficulty(item.get("difficulty")),
            )
        )


def seed_lore(session) -> None:
    data = load_json("lore.json")
    if not isinstance(data, list):
        return
    for item in data:
        if not isinstance(item, dict) or "world_name" not in item:
            continue
        version = item.get("version") or "1.0"
        exists = (
            session.query(Lore)
            .filter_by(world_name=item["world_name"], version=version)
            .first()
        )
        if exists:
            continue
        session.add(
            Lore(
                world_name=item["world_name"],
                version=version,
                content=item.get("content"),
                factions_json=split_list(item.get("factions")),
                magic_tech=item.get("magic_tech"),
                laws_taboos_json=split_list(item.get("laws_taboos")),
                canon_rules_json=split_list(item.get("canon_rules")),
                indexed=False,
            )
        )


def main() -> None:
    with get_session() as session:
        npcs = seed_npcs(session)
        seed_canon_answers(session, npcs)
        seed_quests(session, npcs)
        seed_lore(session)
        session.commit()


if __name__ == "__main__":
    main()
