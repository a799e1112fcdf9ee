"""Tests for the OAuth authorization-code sign-in flow."""
from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import parse_qs, urlparse

import pytest  # type: ignore[import-not-found]
import requests

from storefront.db.engine import init_engine_once, reset_for_tests
from storefront.db.repositories import users_repo
from storefront.services import oauth_service


@pytest.fixture(autouse=True)
def in_memory_db(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("STOREFRONT_DB_PATH", ":memory:")
    monkeypatch.setenv("OAUTH_CLIENT_ID", "client-123")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "shh")
    monkeypatch.setenv("OAUTH_TOKEN_URL", "https://idp.test/token")
    monkeypatch.setenv("OAUTH_USERINFO_URL", "https://idp.test/userinfo")
    init_engine_once()
    yield
    reset_for_tests(drop=True)


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def provider(monkeypatch):
    calls: Dict[str, List[Dict[str, Any]]] = {"post": [], "get": []}
    state: Dict[str, Any] = {
        "token": _FakeResponse(200, {"access_token": "at-1", "token_type": "Bearer"}),
        "userinfo": _FakeResponse(200, {"sub": "g-42", "email": "Reader@Example.com", "name": "Reader"}),
    }

    def fake_post(url, data=None, headers=None, timeout=None):
        calls["post"].append({"url": url, "data": data})
        return state["token"]

    def fake_get(url, headers=None, timeout=None):
        calls["get"].append({"url": url, "headers": headers})
        return state["userinfo"]

    monkeypatch.setattr(oauth_service.requests, "post", fake_post)
    monkeypatch.setattr(oauth_service.requests, "get", fake_get)
    return {"calls": calls, "state": state}


def test_authorize_url_carries_client_and_state():
    url = oauth_service.build_authorize_url("https://store.test/auth/callback", "st-1")

    query = parse_qs(urlparse(url).query)
    assert query["client_id"] == ["client-123"]
    assert query["state"] == ["st-1"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://store.test/auth/callback"]


def test_authorize_url_requires_configuration(monkeypatch):
    monkeypatch.delenv("OAUTH_CLIENT_ID")

    with pytest.raises(oauth_service.OAuthNotConfiguredError):
        oauth_service.build_authorize_url("https://store.test/auth/callback", "st-1")


def test_complete_sign_in_mirrors_user(provider):
    user = oauth_service.complete_sign_in(
        code="code-1", state="st-1", expected_state="st-1", redirect_uri="https://store.test/cb"
    )

    assert user.id == "g-42"
    assert user.email == "reader@example.com"
    assert provider["calls"]["post"][0]["data"]["code"] == "code-1"
    assert provider["calls"]["get"][0]["headers"]["Authorization"] == "Bearer at-1"
    stored = users_repo.get_user("g-42")
    assert stored.email == "reader@example.com"
    assert stored.full_name == "Reader"


def test_repeat_sign_in_updates_existing_user(provider):
    oauth_service.complete_sign_in(code="c", state="s", expected_state="s", redirect_uri="r")
    provider["state"]["userinfo"] = _FakeResponse(200, {"sub": "g-42", "email": "new@example.com"})

    oauth_service.complete_sign_in(code="c", state="s", expected_state="s", redirect_uri="r")

    stored = users_repo.get_user("g-42")
    assert stored.email == "new@example.com"
    assert stored.full_name == "Reader"


@pytest.mark.parametrize("state, expected", [("a", "b"), ("a", None), (None, "a")])
def test_state_mismatch_rejected_before_network(provider, state, expected):
    with pytest.raises(oauth_service.OAuthStateError):
        oauth_service.complete_sign_in(code="c", state=state, expected_state=expected, redirect_uri="r")

    assert provider["calls"]["post"] == []


def test_provider_rejection_surfaces_description(provider):
    provider["state"]["token"] = _FakeResponse(400, {"error": "invalid_grant", "error_description": "Bad code"})

    with pytest.raises(oauth_service.OAuthExchangeError, match="Bad code"):
        oauth_service.complete_sign_in(code="c", state="s", expected_state="s", redirect_uri="r")


def test_identity_without_email_rejected(provider):
    provider["state"]["userinfo"] = _FakeResponse(200, {"sub": "g-42"})

    with pytest.raises(oauth_service.OAuthExchangeError, match="identity_incomplete"):
        oauth_service.complete_sign_in(code="c", state="s", expected_state="s", redirect_uri="r")
    assert users_repo.get_user("g-42") is None


def test_network_failure_wrapped(monkeypatch):
    def broken_post(*_a, **_k):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(oauth_service.requests, "post", broken_post)

    with pytest.raises(oauth_service.OAuthExchangeError, match="connection refused"):
        oauth_service.exchange_code("c", "r")
