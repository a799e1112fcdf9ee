"""OAuth 2 authorization-code sign-in against a single identity provider.

Endpoints default to Google and can be pointed at any provider exposing a
userinfo endpoint with ``sub`` and ``email`` claims.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from storefront import config
from storefront.db.repositories import users_repo
from storefront.utils.identity import normalize_email
from storefront.utils.logging import get_logger

LOG = get_logger("oauth_service")

_TIMEOUT = 10


class OAuthError(RuntimeError):
    """Base error for sign-in failures."""


class OAuthNotConfiguredError(OAuthError):
    """Raised when client credentials are absent."""


class OAuthStateError(OAuthError):
    """Raised when the callback state does not match the one issued."""


class OAuthExchangeError(OAuthError):
    """Raised when the provider rejects the code or returns malformed data."""


@dataclass(frozen=True)
class SignedInUser:
    id: str
    email: str
    full_name: Optional[str]


def new_state() -> str:
    return secrets.token_urlsafe(24)


def build_authorize_url(redirect_uri: str, state: str) -> str:
    client_id = config.oauth_client_id()
    if not client_id:
        raise OAuthNotConfiguredError("oauth_not_configured")
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": config.oauth_scope(),
        "state": state,
        "prompt": "select_account",
    }
    return f"{config.oauth_authorize_url()}?{urlencode(params)}"


def _json_or_error(resp: requests.Response, code: str) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        raise OAuthExchangeError(code) from exc
    if resp.status_code != 200 or not isinstance(data, dict):
        LOG.warning("oauth provider error code=%s status=%s body=%s", code, resp.status_code, data)
        detail = data.get("error_description") or data.get("error") if isinstance(data, dict) else None
        raise OAuthExchangeError(str(detail or code))
    return data


def exchange_code(code: str, redirect_uri: str) -> str:
    """Swap the authorization code for an access token."""
    client_id = config.oauth_client_id()
    client_secret = config.oauth_client_secret()
    if not client_id or not client_secret:
        raise OAuthNotConfiguredError("oauth_not_configured")
    try:
        resp = requests.post(
            config.oauth_token_url(),
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            headers={"Accept": "application/json"},
            timeout=_TIMEOUT,
        )
    except requests.RequestException as exc:
        LOG.warning("oauth token request failed: %s", exc)
        raise OAuthExchangeError(str(exc)) from exc
    data = _json_or_error(resp, "token_exchange_failed")
    token = data.get("access_token")
    if not isinstance(token, str) or not token:
        raise OAuthExchangeError("access_token_missing")
    return token


def fetch_userinfo(access_token: str) -> Dict[str, Any]:
    try:
        resp = requests.get(
            config.oauth_userinfo_url(),
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            timeout=_TIMEOUT,
        )
    except requests.RequestException as exc:
        LOG.warning("oauth userinfo request failed: %s", exc)
        raise OAuthExchangeError(str(exc)) from exc
    return _json_or_error(resp, "userinfo_failed")


def complete_sign_in(
    *,
    code: Optional[str],
    state: Optional[str],
    expected_state: Optional[str],
    redirect_uri: str,
) -> SignedInUser:
    """Validate the callback, resolve the identity and mirror it locally."""
    if not expected_state or not state or not secrets.compare_digest(state, expected_state):
        raise OAuthStateError("state_mismatch")
    if not code:
        raise OAuthExchangeError("code_missing")
    token = exchange_code(code, redirect_uri)
    info = fetch_userinfo(token)
    subject = info.get("sub") or info.get("id")
    email = normalize_email(info.get("email"))
    if not subject or not email:
        raise OAuthExchangeError("identity_incomplete")
    full_name = info.get("name") if isinstance(info.get("name"), str) else None
    user = users_repo.upsert_user(str(subject), email, full_name)
    LOG.info("Signed in user id=%s email=%s", user.id, user.email)
    return SignedInUser(id=user.id, email=user.email, full_name=user.full_name)


__all__ = [
    "OAuthError",
    "OAuthNotConfiguredError",
    "OAuthStateError",
    "OAuthExchangeError",
    "SignedInUser",
    "new_state",
    "build_authorize_url",
    "exchange_code",
    "fetch_userinfo",
    "complete_sign_in",
]
