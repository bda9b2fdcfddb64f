import random
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from app.main import app
from fakes import DummySession, patch_session
from llm.client import LLMClientError
from models import CanonAnswer, ChatMessage, DialogMemory, NPC

HEADERS = {"X-Player-Id": "player-1"}


class FakeLLM:
    prompts = []
    reply = "The forge is cold tonight, stranger."
    error = None

    def __init__(self, *args, **kwargs):
        pass

    def generate_npc_reply(self, prompt):
        FakeLLM.prompts.append(prompt)
        if FakeLLM.error:
            raise FakeLLM.error
        return FakeLLM.reply


def _setup(monkeypatch, extra=None):
    data = {
        NPC: [
            NPC(
                id=1,
                name="Olaf",
                role="blacksmith",
                sheet_content="Veteran smith.",
                temperament_json=["gruff"],
                speech_markers_json=["aye"],
                active=True,
            ),
            NPC(id=2, name="Mira", role="herbalist", active=False),
        ],
        CanonAnswer: [
            CanonAnswer(
                id=1,
                npc_id=1,
                intent="greeting",
                pattern_examples_json=["hello", "good day"],
                reply="Aye, welcome to my forge.",
                category="greeting",
                priority=1.0,
            )
        ],
    }
    data.update(extra or {})
    db = DummySession(data)
    patch_session(monkeypatch, db, "app.main.SessionLocal", "dialogue.responder.SessionLocal")
    FakeLLM.prompts = []
    FakeLLM.error = None
    monkeypatch.setattr("dialogue.responder.OllamaClient", FakeLLM)
    return db


def test_canon_reply_skips_model(monkeypatch):
    db = _setup(monkeypatch)
    client = TestClient(app)

    response = client.post("/chat/1/messages", json={"message": "Hello, smith!"}, headers=HEADERS)
    assert response.status_code == 200
    payload = response.json()
    assert payload["reply"] == "Aye, welcome to my forge."
    assert payload["intent"] == "greeting"
    assert payload["used_canon"] is True
    assert payload["player_message"]["sender"] == "player"
    assert payload["npc_message"]["intent_matched"] == "greeting"
    assert FakeLLM.prompts == []

    stored = db.data[ChatMessage]
    assert [message.sender for message in stored] == ["player", "npc"]
    assert all(message.player_id == "player-1" for message in stored)


def test_miss_generates_reply_with_memory(monkeypatch):
    memory = DialogMemory(
        id=1,
        npc_id=1,
        player_id="player-1",
        facts_json=["owes Olaf 5 coins"],
        reputation_json={},
        quest_states_json={},
    )
    _setup(monkeypatch, {DialogMemory: [memory]})
    client = TestClient(app)

    response = client.post(
        "/chat/1/messages", json={"message": "Tell me about the war"}, headers=HEADERS
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["reply"] == FakeLLM.reply
    assert payload["intent"] is None
    assert payload["used_canon"] is False
    assert len(FakeLLM.prompts) == 1
    assert 'Player message: "Tell me about the war"' in FakeLLM.prompts[0]
    assert "owes Olaf 5 coins" in FakeLLM.prompts[0]


def test_chat_errors(monkeypatch):
    _setup(monkeypatch)
    client = TestClient(app)

    assert client.post("/chat/1/messages", json={"message": "hi"}).status_code == 401
    assert (
        client.post("/chat/1/messages", json={"message": "   "}, headers=HEADERS).status_code
        == 400
    )
    assert (
        client.post("/chat/9/messages", json={"message": "hi"}, headers=HEADERS).status_code
        == 404
    )
    assert (
        client.post("/chat/2/messages", json={"message": "hi"}, headers=HEADERS).status_code
        == 400
    )


def test_model_failure_keeps_player_message(monkeypatch):
    db = _setup(monkeypatch)
    FakeLLM.error = LLMClientError("Ollama request failed.")
    client = TestClient(app)

    response = client.post("/chat/1/messages", json={"message": "What news?"}, headers=HEADERS)
    assert response.status_code == 502
    assert [message.sender for message in db.data[ChatMessage]] == ["player"]


def test_history_is_scoped_to_player(monkeypatch):
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    messages = [
        ChatMessage(id=1, player_id="player-1", npc_id=1, message="hello", sender="player",
                    used_canon=False, created_at=now),
        ChatMessage(id=3, player_id="player-2", npc_id=1, message="hey", sender="player",
                    used_canon=False, created_at=now + timedelta(minutes=5)),
        ChatMessage(id=4, player_id="player-1", npc_id=1, message="bye", sender="player",
                    used_canon=False, created_at=now + timedelta(minutes=2)),
        ChatMessage(id=2, player_id="player-1", npc_id=1, message="Aye", sender="npc",
                    intent_matched="greeting", used_canon=True, created_at=now),
    ]
    _setup(monkeypatch, {ChatMessage: messages})
    client = TestClient(app)

    response = client.get("/chat/1/messages", headers=HEADERS)
    assert response.status_code == 200
    records = response.json()
    assert [record["id"] for record in records] == [4, 2, 1]
    assert records[0]["created_at"] == (now + timedelta(minutes=2)).isoformat()

    response = client.get("/chat/1/messages", params={"limit": 1}, headers=HEADERS)
    assert [record["id"] for record in response.json()] == [4]


def _history(count):
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    order = list(range(1, count + 1))
    random.Random(7).shuffle(order)
    return [
        ChatMessage(id=index, player_id="player-1", npc_id=1, message=f"line {index}",
                    sender="player", used_canon=False,
                    created_at=start + timedelta(seconds=index))
        for index in order
    ]


def test_history_defaults_to_newest_fifty(monkeypatch):
    _setup(monkeypatch, {ChatMessage: _history(120)})
    client = TestClient(app)

    response = client.get("/chat/1/messages", headers=HEADERS)
    assert response.status_code == 200
    ids = [record["id"] for record in response.json()]
    assert ids == list(range(120, 70, -1))


def test_history_limit_is_capped(monkeypatch):
    _setup(monkeypatch, {ChatMessage: _history(120)})
    client = TestClient(app)

    response = client.get("/chat/1/messages", params={"limit": 500}, headers=HEADERS)
    assert response.status_code == 200
    assert len(response.json()) == 50

    for limit in (0, -1):
        response = client.get("/chat/1/messages", params={"limit": limit}, headers=HEADERS)
        assert response.status_code == 422


def test_memory_read_and_upsert(monkeypatch):
    db = _setup(monkeypatch)
    client = TestClient(app)

    response = client.get("/chat/1/memory", headers=HEADERS)
    assert response.status_code == 200
    assert response.json() is None

    response = client.put(
        "/chat/1/memory",
        json={
            "facts": ["helped at the forge"],
            "reputation": {"smiths": 2},
            "current_emotion": "pleased",
        },
        headers=HEADERS,
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["facts"] == ["helped at the forge"]
    assert payload["reputation"] == {"smiths": 2}
    assert payload["quest_states"] == {}

    response = client.put(
        "/chat/1/memory",
        json={"quest_states": {"ore_run": {"status": "in_progress"}}},
        headers=HEADERS,
    )
    payload = response.json()
    assert payload["facts"] == ["helped at the forge"]
    assert payload["quest_states"] == {"ore_run": {"status": "in_progress"}}
    assert len(db.data[DialogMemory]) == 1
