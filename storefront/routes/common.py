"""Shared route helpers: CSRF, JSON errors and access guards."""
from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

from flask import jsonify, redirect, request, url_for
from flask_wtf.csrf import CSRFProtect

from storefront.i18n import _
from storefront.utils import (
    AuthenticationRequiredError,
    PermissionError,
    ensure_admin,
    ensure_authenticated,
)

csrf = CSRFProtect()

SECURITY_CLEARANCE_FAILED = "Security clearance failed. Please contact administrator."

_ERROR_MESSAGES = {
    "auth_required": "Sign in to continue.",
    "admin_required": "Admin privileges required.",
    "book_missing": "Book could not be found.",
    "purchase_missing": "Purchase could not be found.",
    "status_invalid": "Status must be pending, completed or failed.",
    "title_required": "Title is required.",
    "description_required": "Description is required.",
    "price_invalid": "Price must be a whole number of zero or more.",
    "pdf_required": "A PDF file is required.",
    "thumbnail_required": "A thumbnail image is required.",
    "pdf_invalid": "The book file must be a PDF.",
    "thumbnail_invalid": "The thumbnail must be a JPG, PNG, WEBP or GIF image.",
    "content_required": "Message cannot be empty.",
    "content_too_long": "Message is too long.",
    "recipient_required": "Choose a conversation first.",
    "security_clearance_failed": SECURITY_CLEARANCE_FAILED,
    "purchase_failed": "Error recording purchase. Please contact support.",
    "write_failed": "The change could not be saved.",
    "oauth_not_configured": "Sign-in is not configured.",
    "state_mismatch": "Sign-in request expired. Please try again.",
    "json_required": "Requests to this endpoint must be sent as JSON.",
}


def error_message_for(code: str) -> Optional[str]:
    message = _ERROR_MESSAGES.get(code)
    return _(message) if message else None


def json_error(
    code: str,
    status: int = 400,
    *,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    payload: Dict[str, Any] = {"error": code}
    final_message = message or error_message_for(code)
    if final_message:
        payload["message"] = final_message
    if details is not None:
        payload["details"] = details
    return jsonify(payload), status


def login_redirect():
    target = request.full_path or request.path or "/"
    if target.endswith("?"):
        target = target[:-1]
    login_url = url_for("auth.auth_page")
    return redirect(f"{login_url}?{urlencode({'next': target})}")


def require_user(prefer_redirect: bool = False):
    """Return True for a signed-in visitor, otherwise the response to send."""
    try:
        ensure_authenticated()
    except AuthenticationRequiredError:
        if prefer_redirect:
            return login_redirect()
        return json_error("auth_required", 401, details={"redirect": url_for("auth.auth_page")})
    return True


def require_admin(prefer_redirect: bool = False):
    try:
        ensure_admin()
    except PermissionError:
        if prefer_redirect:
            auth = require_user(prefer_redirect=True)
            if auth is not True:
                return auth
            return redirect(url_for("store.index"))
        return json_error("admin_required", 403)
    return True


def require_json():
    """Reject non-JSON bodies on CSRF-exempt endpoints."""
    if request.is_json:
        return True
    return json_error("json_required", 415)


__all__ = [
    "csrf",
    "SECURITY_CLEARANCE_FAILED",
    "error_message_for",
    "json_error",
    "login_redirect",
    "require_user",
    "require_admin",
    "require_json",
]
