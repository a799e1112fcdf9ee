"""Utility helpers.

Bridging import surface so routes and services share one identity module.
"""
from .identity import (
    normalize_email,
    get_current_user_email,
    get_current_user_id,
    is_authenticated,
    is_admin_email,
    is_admin_user,
    set_identity_session,
    clear_identity_session,
    ensure_authenticated,
    ensure_admin,
    PermissionError,
    AuthenticationRequiredError,
)

__all__ = [
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
