"""Identity & permission helpers backed by the Flask session."""
from __future__ import annotations

from typing import Any, Optional

from flask import session

from storefront import config as app_config

SESSION_USER_ID_KEY = "user_id"
SESSION_EMAIL_KEY = "email"
SESSION_NAME_KEY = "full_name"


def normalize_email(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip().lower()
    return cleaned or None


def get_current_user_email() -> Optional[str]:
    return normalize_email(session.get(SESSION_EMAIL_KEY))


def get_current_user_id() -> Optional[str]:
    uid = session.get(SESSION_USER_ID_KEY)
    if uid is None:
        return None
    cleaned = str(uid).strip()
    return cleaned or None


def is_authenticated() -> bool:
    return get_current_user_id() is not None


def is_admin_email(email: Any) -> bool:
    normalized = normalize_email(email)
    configured = normalize_email(app_config.admin_email())
    if not normalized or not configured:
        return False
    return normalized == configured


def is_admin_user() -> bool:
    """Recomputed from the session email and the configured address on every call."""
    if not is_authenticated():
        return False
    return is_admin_email(get_current_user_email())


def set_identity_session(user_id: str, email: Optional[str], full_name: Optional[str] = None) -> None:
    session[SESSION_USER_ID_KEY] = user_id
    session[SESSION_EMAIL_KEY] = normalize_email(email)
    if full_name:
        session[SESSION_NAME_KEY] = full_name
    else:
        session.pop(SESSION_NAME_KEY, None)


def clear_identity_session() -> None:
    for key in (SESSION_USER_ID_KEY, SESSION_EMAIL_KEY, SESSION_NAME_KEY):
        session.pop(key, None)


class PermissionError(Exception):
    pass


class AuthenticationRequiredError(PermissionError):
    pass


def ensure_authenticated() -> str:
    user_id = get_current_user_id()
    if user_id is None:
        raise AuthenticationRequiredError("Authentication required")
    return user_id


def ensure_admin() -> None:
    if not is_admin_user():
        raise PermissionError("Admin privileges required")


__all__ = [
    "SESSION_USER_ID_KEY",
    "SESSION_EMAIL_KEY",
    "SESSION_NAME_KEY",
    "normalize_email",
    "get_current_user_email",
    "get_current_user_id",
    "is_authenticated",
    "is_admin_email",
    "is_admin_user",
    "set_identity_session",
    "clear_identity_session",
    "ensure_authenticated",
    "ensure_admin",
    "PermissionError",
    "AuthenticationRequiredError",
]
