"""Tests for the OAuth sign-in gate routes."""
from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest  # type: ignore[import-not-found]

from storefront.db.engine import init_engine_once, reset_for_tests
from storefront.services import oauth_service
from storefront.services.oauth_service import SignedInUser
from storefront.startup import create_app


@pytest.fixture(autouse=True)
def in_memory_db(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("STOREFRONT_DB_PATH", ":memory:")
    monkeypatch.setenv("OAUTH_CLIENT_ID", "client-123")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "shh")
    monkeypatch.setenv("STOREFRONT_ADMIN_EMAIL", "admin@example.com")
    init_engine_once()
    yield
    reset_for_tests(drop=True)


@pytest.fixture
def app(in_memory_db):
    return create_app({"TESTING": True, "SECRET_KEY": "auth-secret", "WTF_CSRF_ENABLED": False})


@pytest.fixture
def client(app):
    return app.test_client()


def test_auth_page_for_anonymous_and_signed_in(client):
    assert client.get("/auth/").status_code == 200

    with client.session_transaction() as sess:
        sess["user_id"] = "u1"
        sess["email"] = "reader@example.com"

    resp = client.get("/auth/?next=/library/")
    assert resp.status_code == 302
    assert resp.headers["Location"] == "/library/"


def test_login_redirects_to_provider_with_state(client):
    resp = client.get("/auth/login?next=/library/")

    assert resp.status_code == 302
    target = urlparse(resp.headers["Location"])
    query = parse_qs(target.query)
    assert target.netloc == "accounts.google.com"
    assert query["redirect_uri"] == ["http://localhost/auth/callback"]
    with client.session_transaction() as sess:
        assert sess["oauth_state"] == query["state"][0]
        assert sess["oauth_next"] == "/library/"


def test_login_ignores_offsite_next(client):
    client.get("/auth/login?next=https://evil.example/")

    with client.session_transaction() as sess:
        assert sess["oauth_next"] == "/"


def test_callback_signs_in_and_returns_to_next(client, monkeypatch):
    captured = {}

    def fake_complete(**kwargs):
        captured.update(kwargs)
        return SignedInUser(id="g-1", email="admin@example.com", full_name="Admin")

    monkeypatch.setattr(oauth_service, "complete_sign_in", fake_complete)
    with client.session_transaction() as sess:
        sess["oauth_state"] = "st-1"
        sess["oauth_next"] = "/admin/"

    resp = client.get("/auth/callback?code=abc&state=st-1")

    assert resp.status_code == 302
    assert resp.headers["Location"] == "/admin/"
    assert captured["expected_state"] == "st-1"
    assert captured["code"] == "abc"
    session_info = client.get("/auth/api/session").get_json()
    assert session_info == {
        "authenticated": True,
        "user_id": "g-1",
        "email": "admin@example.com",
        "is_admin": True,
    }


def test_callback_state_mismatch_does_not_sign_in(client):
    with client.session_transaction() as sess:
        sess["oauth_state"] = "expected"

    resp = client.get("/auth/callback?code=abc&state=forged")

    assert resp.status_code == 302
    assert resp.headers["Location"] == "/auth/"
    assert client.get("/auth/api/session").get_json()["authenticated"] is False


def test_logout_clears_identity(client):
    with client.session_transaction() as sess:
        sess["user_id"] = "u1"
        sess["email"] = "reader@example.com"

    resp = client.get("/auth/logout")

    assert resp.status_code == 302
    assert client.get("/auth/api/session").get_json() == {"authenticated": False, "is_admin": False}
