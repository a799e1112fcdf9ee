"""Tests for the support chat HTTP endpoints and event stream."""
from __future__ import annotations

import json

import pytest  # type: ignore[import-not-found]

from storefront.db.engine import init_engine_once, reset_for_tests
from storefront.services import chat_service, realtime
from storefront.startup import create_app

ADMIN = "admin@example.com"


@pytest.fixture(autouse=True)
def in_memory_db(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("STOREFRONT_DB_PATH", ":memory:")
    monkeypatch.setenv("STOREFRONT_ADMIN_EMAIL", ADMIN)
    monkeypatch.setattr(realtime, "_FEED", realtime.ChangeFeed())
    init_engine_once()
    yield
    reset_for_tests(drop=True)


@pytest.fixture
def app(in_memory_db):
    return create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "chat-secret",
            "WTF_CSRF_ENABLED": False,
            "CHAT_STREAM_KEEPALIVE": 0.05,
        }
    )


def _client(app, user_id: str, email: str):
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["email"] = email
    return client


def test_buyer_send_and_read_own_thread(app):
    alice = _client(app, "alice", "alice@example.com")
    bob = _client(app, "bob", "bob@example.com")

    sent = alice.post("/chat/api/send", json={"content": "Where is my book?"})
    bob.post("/chat/api/send", json={"content": "Hello"})

    assert sent.status_code == 201
    assert sent.get_json()["message"]["recipient_id"] == "SYSTEM"
    assert [m["content"] for m in alice.get("/chat/api/messages").get_json()["messages"]] == ["Where is my book?"]
    assert [m["content"] for m in alice.get("/chat/api/messages?user=bob").get_json()["messages"]] == [
        "Where is my book?"
    ]


def test_admin_roster_and_reply(app):
    alice = _client(app, "alice", "alice@example.com")
    admin = _client(app, "admin-1", ADMIN)
    alice.post("/chat/api/send", json={"content": "Help"})

    roster = admin.get("/chat/api/conversations").get_json()["conversations"]
    no_thread = admin.get("/chat/api/messages").get_json()["messages"]
    missing_recipient = admin.post("/chat/api/send", json={"content": "Hi"})
    reply = admin.post("/chat/api/send", json={"content": "On it", "recipient_id": "alice"})

    assert roster == [{"user_id": "alice", "email": "alice@example.com"}]
    assert no_thread == []
    assert missing_recipient.status_code == 400
    assert missing_recipient.get_json()["error"] == "recipient_required"
    assert reply.status_code == 201
    assert [m["content"] for m in alice.get("/chat/api/messages").get_json()["messages"]] == ["Help", "On it"]


def test_conversations_are_admin_only(app):
    alice = _client(app, "alice", "alice@example.com")

    assert alice.get("/chat/api/conversations").status_code == 403
    assert app.test_client().get("/chat/api/messages").status_code == 401


def test_blank_message_rejected(app):
    alice = _client(app, "alice", "alice@example.com")

    resp = alice.post("/chat/api/send", json={"content": "   "})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "content_required"


def test_send_rejects_form_posts(app):
    alice = _client(app, "alice", "alice@example.com")

    resp = alice.post("/chat/api/send", data={"content": "Hello"})

    assert resp.status_code == 415
    assert resp.get_json()["error"] == "json_required"
    assert chat_service.list_thread("alice", is_admin=False) == []


def test_chat_page_renders(app):
    admin = _client(app, "admin-1", ADMIN)
    alice = _client(app, "alice", "alice@example.com")
    alice.post("/chat/api/send", json={"content": "Help"})

    assert "alice@example.com" in admin.get("/chat/").get_data(as_text=True)
    assert "Help" in alice.get("/chat/").get_data(as_text=True)


def _next_event(chunks) -> dict:
    for _ in range(200):
        chunk = next(chunks)
        text = chunk.decode("utf-8") if isinstance(chunk, bytes) else chunk
        if text.startswith("data: "):
            return json.loads(text[len("data: "):].strip())
    raise AssertionError("no event received")


def test_stream_delivers_only_the_open_thread(app):
    alice = _client(app, "alice", "alice@example.com")

    resp = alice.get("/chat/api/stream", buffered=False)
    assert resp.status_code == 200
    assert resp.mimetype == "text/event-stream"
    chunks = iter(resp.response)
    assert realtime.get_feed().subscriber_count() == 1

    chat_service.send_message("bob", "bob@example.com", "not for alice", is_admin=False)
    chat_service.send_message("admin-1", ADMIN, "for alice", is_admin=True, recipient_id="alice")

    event = _next_event(chunks)
    assert event["table"] == "messages"
    assert event["new"]["content"] == "for alice"

    resp.close()
    assert realtime.get_feed().subscriber_count() == 0
