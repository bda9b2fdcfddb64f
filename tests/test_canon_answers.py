from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from app.main import app
from fakes import DummySession, patch_session
from models import CanonAnswer, NPC


def _db():
    return DummySession(
        {
            NPC: [
                NPC(id=1, name="Olaf", role="smith", active=True),
                NPC(id=2, name="Mira", role="herbalist", active=True),
            ]
        }
    )


def test_create_canon_answer_normalises_form_fields(monkeypatch):
    patch_session(monkeypatch, _db())
    client = TestClient(app)

    response = client.post(
        "/canon_answers",
        json={
            "npc_id": 1,
            "intent": "greeting",
            "pattern_examples": "hello, good day , ",
            "reply": "Aye, welcome to my forge.",
            "category": "Greeting",
            "priority": "",
        },
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["pattern_examples"] == ["hello", "good day"]
    assert payload["category"] == "greeting"
    assert payload["priority"] == 1.0


def test_create_canon_answer_validates_npc_and_category(monkeypatch):
    patch_session(monkeypatch, _db())
    client = TestClient(app)

    response = client.post(
        "/canon_answers",
        json={"npc_id": 9, "intent": "greeting", "reply": "Hi"},
    )
    assert response.status_code == 404

    response = client.post(
        "/canon_answers",
        json={"npc_id": 1, "intent": "greeting", "reply": "Hi", "category": "gossip"},
    )
    assert response.status_code == 400


def test_filter_group_update_and_delete(monkeypatch):
    db = _db()
    db.data[CanonAnswer] = [
        CanonAnswer(id=1, npc_id=1, intent="greeting", reply="Aye", category="greeting", priority=1.0),
        CanonAnswer(id=2, npc_id=2, intent="herbs", reply="Sage", category="trade", priority=1.0),
        CanonAnswer(id=3, npc_id=5, intent="lost", reply="?", category="other", priority=1.0),
    ]
    patch_session(monkeypatch, db)
    client = TestClient(app)

    response = client.get("/canon_answers", params={"npc_id": 2})
    assert [record["intent"] for record in response.json()] == ["herbs"]

    grouped = client.get("/canon_answers/by_npc").json()
    assert set(grouped) == {"Olaf", "Mira", "Unknown NPC"}

    response = client.put(
        "/canon_answers/1",
        json={"pattern_examples": ["hi", "hello"], "priority": "2.5"},
    )
    assert response.status_code == 200
    assert response.json()["pattern_examples"] == ["hi", "hello"]
    assert response.json()["priority"] == 2.5
    assert response.json()["reply"] == "Aye"

    assert client.delete("/canon_answers/3").status_code == 200
    assert client.delete("/canon_answers/3").status_code == 404


def test_list_canon_answers_newest_first(monkeypatch):
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    db = _db()
    db.data[CanonAnswer] = [
        CanonAnswer(id=1, npc_id=1, intent="greeting", reply="Aye.", created_at=start),
        CanonAnswer(id=2, npc_id=1, intent="farewell", reply="Go well.",
                    created_at=start + timedelta(minutes=10)),
        CanonAnswer(id=3, npc_id=2, intent="herbs", reply="Sage.",
                    created_at=start + timedelta(minutes=5)),
    ]
    patch_session(monkeypatch, db)
    client = TestClient(app)

    response = client.get("/canon_answers")
    assert [record["intent"] for record in response.json()] == ["farewell", "herbs", "greeting"]

    grouped = client.get("/canon_answers/by_npc").json()
    assert [record["intent"] for record in grouped["Olaf"]] == ["farewell", "greeting"]

    response = client.post("/canon_answers", json={"npc_id": 1, "intent": "", "reply": "x"})
    assert response.status_code == 422
    assert client.put("/canon_answers/1", json={"reply": None}).status_code == 422
