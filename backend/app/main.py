import logging
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from analytics.dashboard import build_dashboard
from config import configure_logging, settings
from content.forms import (
    ContentError,
    group_by_npc,
    normalize_category,
    normalize_difficulty,
    parse_priority,
    split_list,
)
from db import SessionLocal, check_db_connection
from dialogue.memory import find_memory, memory_payload, upsert_memory
from dialogue.responder import (
    ChatError,
    NPCNotFoundError,
    list_messages,
    message_payload,
    send_player_message,
)
from llm.client import LLMClientError
from models import CanonAnswer, ChatMessage, Lore, NPC, Quest

configure_logging(settings.dev_mode)
log = logging.getLogger(__name__)

PAGES = [
    {"name": "Chat", "title": "Dialogues"},
    {"name": "NPCManagement", "title": "NPC"},
    {"name": "LoreManagement", "title": "Lore"},
    {"name": "CanonManagement", "title": "Canon"},
    {"name": "QuestManagement", "title": "Quests"},
    {"name": "Analytics", "title": "Statistics"},
]
MAIN_PAGE = "Chat"

ListField = list[str] | str | None

app = FastAPI(
    title="npc-canon-console API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)
log.info("app_start %s", settings.redacted())


@app.get("/health")
def health() -> dict:
    try:
        check_db_connection()
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Database unavailable") from exc
    return {"status": "ok"}


@app.get("/api/pages")
def list_pages() -> dict:
    return {"main_page": MAIN_PAGE, "pages": PAGES}


def current_player(x_player_id: str | None) -> str:
    player_id = (x_player_id or "").strip()
    if not player_id:
        raise HTTPException(status_code=401, detail="Player identity required")
    return player_id


@app.get("/me")
def me(x_player_id: str | None = Header(default=None)) -> dict:
    return {"id": current_player(x_player_id)}


class NPCCreate(BaseModel):
    npc_id: str | None = None
    name: str = Field(min_length=1)
    role: str | None = None
    sheet_content: str | None = None
    temperament: ListField = None
    speech_markers: ListField = None
    goals: ListField = None
    active: bool = True


class NPCUpdate(BaseModel):
    npc_id: str | None = None
    name: str | None = Field(default=None, min_length=1)
    role: str | None = None
    sheet_content: str | None = None
    temperament: ListField = None
    speech_markers: ListField = None
    goals: ListField = None
    active: bool | None = None


class NPCActiveRequest(BaseModel):
    active: bool


class LoreCreate(BaseModel):
    world_name: str = Field(min_length=1)
    version: str | None = None
    content: str | None = None
    factions: ListField = None
    magic_tech: str | None = None
    laws_taboos: ListField = None
    canon_rules: ListField = None


class LoreUpdate(BaseModel):
    world_name: str | None = Field(default=None, min_length=1)
    version: str | None = None
    content: str | None = None
    factions: ListField = None
    magic_tech: str | None = None
    laws_taboos: ListField = None
    canon_rules: ListField = None


class CanonCreate(BaseModel):
    npc_id: int
    intent: str = Field(min_length=1)
    pattern_examples: ListField = None
    reply: str = Field(min_length=1)
    stage_directions: str | None = None
    category: str | None = None
    priority: Any = None


class CanonUpdate(BaseModel):
    npc_id: int | None = None
    intent: str | None = Field(default=None, min_length=1)
    pattern_examples: ListField = None
    reply: str | None = Field(default=None, min_length=1)
    stage_directions: str | None = None
    category: str | None = None
    priority: Any = None


class QuestCreate(BaseModel):
    quest_id: str | None = None
    npc_id: int
    title: str = Field(min_length=1)
    description: str | None = None
    success_condition: str | None = None
    reward: str | None = None
    hints: ListField = None
    difficulty: str | None = None


class QuestUpdate(BaseModel):
    quest_id: str | None = None
    npc_id: int | None = None
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    success_condition: str | None = None
    reward: str | None = None
    hints: ListField = None
    difficulty: str | None = None


class ChatMessageRequest(BaseModel):
    message: str


class MemoryUpdate(BaseModel):
    facts: list[str] | None = None
    reputation: dict[str, int] | None = None
    quest_states: dict[str, dict] | None = None
    current_emotion: str | None = None


def _npc_payload(npc: NPC) -> dict:
    return {
        "id": npc.id,
        "npc_id": npc.npc_id,
        "name": npc.name,
        "role": npc.role,
        "sheet_content": npc.sheet_content,
        "temperament": npc.temperament_json or [],
        "speech_markers": npc.speech_markers_json or [],
        "goals": npc.goals_json or [],
        "active": bool(npc.active),
        "created_at": npc.created_at.isoformat() if npc.created_at else None,
    }


def _lore_payload(lore: Lore) -> dict:
    return {
        "id": lore.id,
        "world_name": lore.world_name,
        "version": lore.version,
        "content": lore.content,
        "factions": lore.factions_json or [],
        "magic_tech": lore.magic_tech,
        "laws_taboos": lore.laws_taboos_json or [],
        "canon_rules": lore.canon_rules_json or [],
        "indexed": bool(lore.indexed),
        "created_at": lore.created_at.isoformat() if lore.created_at else None,
    }


def _canon_payload(canon: CanonAnswer) -> dict:
    return {
        "id": canon.id,
        "npc_id": canon.npc_id,
        "intent": canon.intent,
        "pattern_examples": canon.pattern_examples_json or [],
        "reply": canon.reply,
        "stage_directions": canon.stage_directions,
        "category": canon.category,
        "priority": canon.priority,
        "created_at": canon.created_at.isoformat() if canon.created_at else None,
    }


def _quest_payload(quest: Quest) -> dict:
    return {
        "id": quest.id,
        "quest_id": quest.quest_id,
        "npc_id": quest.npc_id,
        "title": quest.title,
        "description": quest.description,
        "success_condition": quest.success_condition,
        "reward": quest.reward,
        "hints": quest.hints_json or [],
        "difficulty": quest.difficulty,
        "created_at": quest.created_at.isoformat() if quest.created_at else None,
    }


def _get_or_404(db, model, record_id: int, label: str):
    record = db.get(model, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return record


def _content_value(normalize, value):
    try:
        return normalize(value)
    except ContentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _require_values(changes: dict, *fields: str) -> None:
    # Required columns may be omitted from an update but never cleared.
    for field in fields:
        if field in changes and changes[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")


# NPCs


@app.get("/npcs")
def list_npcs(active: bool | None = None) -> list[dict]:
    with SessionLocal() as db:
        query = db.query(NPC)
        if active is not None:
            query = query.filter_by(active=active)
        records = query.order_by(NPC.created_at.desc(), NPC.id.desc()).all()
        return [_npc_payload(record) for record in records]


@app.get("/npcs/{npc_id}")
def get_npc(npc_id: int) -> dict:
    with SessionLocal() as db:
        return _npc_payload(_get_or_404(db, NPC, npc_id, "NPC"))


@app.post("/npcs")
def create_npc(payload: NPCCreate) -> dict:
    with SessionLocal() as db:
        npc = NPC(
            npc_id=payload.npc_id,
            name=payload.name,
            role=payload.role,
            sheet_content=payload.sheet_content,
            temperament_json=split_list(payload.temperament),
            speech_markers_json=split_list(payload.speech_markers),
            goals_json=split_list(payload.goals),
            active=payload.active,
        )
        db.add(npc)
        db.commit()
        db.refresh(npc)
        log.info("npc_created id=%s name=%s", npc.id, npc.name)
        return _npc_payload(npc)


@app.put("/npcs/{npc_id}")
def update_npc(npc_id: int, payload: NPCUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    _require_values(changes, "name", "active")
    with SessionLocal() as db:
        npc = _get_or_404(db, NPC, npc_id, "NPC")
        for field in ("npc_id", "name", "role", "sheet_content", "active"):
            if field in changes:
                setattr(npc, field, changes[field])
        for field in ("temperament", "speech_markers", "goals"):
            if field in changes:
                setattr(npc, f"{field}_json", split_list(changes[field]))
        db.commit()
        db.refresh(npc)
        return _npc_payload(npc)


@app.post("/npcs/{npc_id}/active")
def set_npc_active(npc_id: int, payload: NPCActiveRequest) -> dict:
    with SessionLocal() as db:
        npc = _get_or_404(db, NPC, npc_id, "NPC")
        npc.active = payload.active
        db.commit()
        db.refresh(npc)
        return _npc_payload(npc)


# Lore


@app.get("/lore")
def list_lore() -> list[dict]:
    with SessionLocal() as db:
        records = db.query(Lore).order_by(Lore.created_at.desc(), Lore.id.desc()).all()
        return [_lore_payload(record) for record in records]


@app.post("/lore")
def create_lore(payload: LoreCreate) -> dict:
    with SessionLocal() as db:
        lore = Lore(
            world_name=payload.world_name,
            version=payload.version or "1.0",
            content=payload.content,
            factions_json=split_list(payload.factions),
            magic_tech=payload.magic_tech,
            laws_taboos_json=split_list(payload.laws_taboos),
            canon_rules_json=split_list(payload.canon_rules),
            indexed=False,
        )
        db.add(lore)
        db.commit()
        db.refresh(lore)
        return _lore_payload(lore)


@app.put("/lore/{lore_id}")
def update_lore(lore_id: int, payload: LoreUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    _require_values(changes, "world_name")
    with SessionLocal() as db:
        lore = _get_or_404(db, Lore, lore_id, "Lore")
        if "world_name" in changes:
            lore.world_name = changes["world_name"]
        for field in ("content", "magic_tech"):
            if field in changes:
                setattr(lore, field, changes[field])
        if "version" in changes:
            lore.version = changes["version"] or "1.0"
        for field in ("factions", "laws_taboos", "canon_rules"):
            if field in changes:
                setattr(lore, f"{field}_json", split_list(changes[field]))
        db.commit()
        db.refresh(lore)
        return _lore_payload(lore)


@app.post("/lore/{lore_id}/indexed")
def mark_lore_indexed(lore_id: int) -> dict:
    with SessionLocal() as db:
        lore = _get_or_404(db, Lore, lore_id, "Lore")
        lore.indexed = True
        db.commit()
        db.refresh(lore)
        return _lore_payload(lore)


@app.delete("/lore/{lore_id}")
def delete_lore(lore_id: int) -> dict:
    with SessionLocal() as db:
        lore = _get_or_404(db, Lore, lore_id, "Lore")
        db.delete(lore)
        db.commit()
        return {"id": lore_id, "deleted": True}


# Canon answers


def _list_canon(db, npc_id: int | None) -> list[CanonAnswer]:
    query = db.query(CanonAnswer)
    if npc_id is not None:
        query = query.filter_by(npc_id=npc_id)
    return query.order_by(CanonAnswer.created_at.desc(), CanonAnswer.id.desc()).all()


@app.get("/canon_answers")
def list_canon_answers(npc_id: int | None = None) -> list[dict]:
    with SessionLocal() as db:
        return [_canon_payload(record) for record in _list_canon(db, npc_id)]


@app.get("/canon_answers/by_npc")
def list_canon_answers_by_npc(npc_id: int | None = None) -> dict[str, list[dict]]:
    with SessionLocal() as db:
        grouped = group_by_npc(_list_canon(db, npc_id), db.query(NPC).all())
        return {
            name: [_canon_payload(record) for record in records]
            for name, records in grouped.items()
        }


@app.post("/canon_answers")
def create_canon_answer(payload: CanonCreate) -> dict:
    category = _content_value(normalize_category, payload.category)
    with SessionLocal() as db:
        _get_or_404(db, NPC, payload.npc_id, "NPC")
        canon = CanonAnswer(
            npc_id=payload.npc_id,
            intent=payload.intent,
            pattern_examples_json=split_list(payload.pattern_examples),
            reply=payload.reply,
            stage_directions=payload.stage_directions,
            category=category,
            priority=parse_priority(payload.priority),
        )
        db.add(canon)
        db.commit()
        db.refresh(canon)
        log.info("canon_created id=%s npc=%s intent=%s", canon.id, canon.npc_id, canon.intent)
        return _canon_payload(canon)


@app.put("/canon_answers/{canon_id}")
def update_canon_answer(canon_id: int, payload: CanonUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    _require_values(changes, "npc_id", "intent", "reply")
    with SessionLocal() as db:
        canon = _get_or_404(db, CanonAnswer, canon_id, "Canon answer")
        if "npc_id" in changes:
            _get_or_404(db, NPC, changes["npc_id"], "NPC")
            canon.npc_id = changes["npc_id"]
        for field in ("intent", "reply"):
            if field in changes:
                setattr(canon, field, changes[field])
        if "stage_directions" in changes:
            canon.stage_directions = changes["stage_directions"]
        if "pattern_examples" in changes:
            canon.pattern_examples_json = split_list(changes["pattern_examples"])
        if "category" in changes:
            canon.category = _content_value(normalize_category, changes["category"])
        if "priority" in changes:
            canon.priority = parse_priority(changes["priority"])
        db.commit()
        db.refresh(canon)
        return _canon_payload(canon)


@app.delete("/canon_answers/{canon_id}")
def delete_canon_answer(canon_id: int) -> dict:
    with SessionLocal() as db:
        canon = _get_or_404(db, CanonAnswer, canon_id, "Canon answer")
        db.delete(canon)
        db.commit()
        return {"id": canon_id, "deleted": True}


# Quests


def _list_quests(db, npc_id: int | None) -> list[Quest]:
    query = db.query(Quest)
    if npc_id is not None:
        query = query.filter_by(npc_id=npc_id)
    return query.order_by(Quest.created_at.desc(), Quest.id.desc()).all()


@app.get("/quests")
def list_quests(npc_id: int | None = None) -> list[dict]:
    with SessionLocal() as db:
        return [_quest_payload(record) for record in _list_quests(db, npc_id)]


@app.get("/quests/by_npc")
def list_quests_by_npc(npc_id: int | None = None) -> dict[str, list[dict]]:
    with SessionLocal() as db:
        grouped = group_by_npc(_list_quests(db, npc_id), db.query(NPC).all())
        return {
            name: [_quest_payload(record) for record in records]
            for name, records in grouped.items()
        }


@app.post("/quests")
def create_quest(payload: QuestCreate) -> dict:
    difficulty = _content_value(normalize_difficulty, payload.difficulty)
    with SessionLocal() as db:
        _get_or_404(db, NPC, payload.npc_id, "NPC")
        quest = Quest(
            quest_id=payload.quest_id,
            npc_id=payload.npc_id,
            title=payload.title,
            description=payload.description,
            success_condition=payload.success_condition,
            reward=payload.reward,
            hints_json=split_list(payload.hints, "\n"),
            difficulty=difficulty,
        )
        db.add(quest)
        db.commit()
        db.refresh(quest)
        return _quest_payload(quest)


@app.put("/quests/{quest_id}")
def update_quest(quest_id: int, payload: QuestUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    _require_values(changes, "npc_id", "title")
    with SessionLocal() as db:
        quest = _get_or_404(db, Quest, quest_id, "Quest")
        if "npc_id" in changes:
            _get_or_404(db, NPC, changes["npc_id"], "NPC")
            quest.npc_id = changes["npc_id"]
        if "title" in changes:
            quest.title = changes["title"]
        for field in ("quest_id", "description", "success_condition", "reward"):
            if field in changes:
                setattr(quest, field, changes[field])
        if "hints" in changes:
            quest.hints_json = split_list(changes["hints"], "\n")
        if "difficulty" in changes:
            quest.difficulty = _content_value(normalize_difficulty, changes["difficulty"])
        db.commit()
        db.refresh(quest)
        return _quest_payload(quest)


@app.delete("/quests/{quest_id}")
def delete_quest(quest_id: int) -> dict:
    with SessionLocal() as db:
        quest = _get_or_404(db, Quest, quest_id, "Quest")
        db.delete(quest)
        db.commit()
        return {"id": quest_id, "deleted": True}


# Chat


@app.get("/chat/npcs")
def list_chat_npcs() -> list[dict]:
    return list_npcs(active=True)


@app.get("/chat/{npc_id}/messages")
def get_chat_messages(
    npc_id: int,
    limit: int | None = Query(default=None, ge=1),
    x_player_id: str | None = Header(default=None),
) -> list[dict]:
    player_id = current_player(x_player_id)
    with SessionLocal() as db:
        records = list_messages(db, player_id, npc_id, limit)
        return [message_payload(record) for record in records]


@app.post("/chat/{npc_id}/messages")
def post_chat_message(
    npc_id: int,
    payload: ChatMessageRequest,
    x_player_id: str | None = Header(default=None),
) -> dict:
    player_id = current_player(x_player_id)
    try:
        exchange = send_player_message(player_id, npc_id, payload.message)
    except NPCNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ChatError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LLMClientError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {
        "reply": exchange.response.reply,
        "intent": exchange.response.intent,
        "used_canon": exchange.response.used_canon,
        "player_message": message_payload(exchange.player_message),
        "npc_message": message_payload(exchange.npc_message),
    }


@app.get("/chat/{npc_id}/memory")
def get_chat_memory(
    npc_id: int,
    x_player_id: str | None = Header(default=None),
) -> dict | None:
    player_id = current_player(x_player_id)
    with SessionLocal() as db:
        memory = find_memory(db, npc_id, player_id)
        return memory_payload(memory) if memory else None


@app.put("/chat/{npc_id}/memory")
def put_chat_memory(
    npc_id: int,
    payload: MemoryUpdate,
    x_player_id: str | None = Header(default=None),
) -> dict:
    player_id = current_player(x_player_id)
    with SessionLocal() as db:
        _get_or_404(db, NPC, npc_id, "NPC")
        memory = upsert_memory(
            db,
            npc_id,
            player_id,
            facts=payload.facts,
            reputation=payload.reputation,
            quest_states=payload.quest_states,
            current_emotion=payload.current_emotion,
        )
        db.commit()
        db.refresh(memory)
        return memory_payload(memory)


# Analytics


@app.get("/analytics")
def get_analytics() -> dict:
    with SessionLocal() as db:
        messages = (
            db.query(ChatMessage)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(settings.analytics_message_limit)
            .all()
        )
        return build_dashboard(
            messages,
            db.query(CanonAnswer).all(),
            db.query(NPC).all(),
            db.query(Quest).all(),
        )
