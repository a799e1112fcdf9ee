"""Sign-in gate backed by the external OAuth provider.

The session only ever holds the identity returned by the provider. Admin
status is never stored; it is recomputed from the email on each request.
"""
from __future__ import annotations

from urllib.parse import urlparse

from flask import Blueprint, flash, jsonify, redirect, render_template, request, session, url_for

from storefront.i18n import _
from storefront.services import oauth_service
from storefront.utils import (
    clear_identity_session,
    get_current_user_email,
    get_current_user_id,
    is_admin_user,
    is_authenticated,
    set_identity_session,
)
from storefront.utils.logging import get_logger

bp = Blueprint("auth", __name__, url_prefix="/auth")
LOG = get_logger("routes.auth")

_STATE_KEY = "oauth_state"
_NEXT_KEY = "oauth_next"


def _safe_next(raw) -> str:
    """Only same-site relative targets survive; anything else goes home."""
    if not isinstance(raw, str) or not raw:
        return url_for("store.index")
    parsed = urlparse(raw)
    if parsed.scheme or parsed.netloc or not raw.startswith("/") or raw.startswith("//"):
        return url_for("store.index")
    return raw


def _callback_url() -> str:
    return url_for("auth.callback", _external=True)


@bp.route("/", methods=["GET"])
def auth_page():
    if is_authenticated():
        return redirect(_safe_next(request.args.get("next")))
    return render_template("auth.html", next_url=request.args.get("next") or "")


@bp.route("/login", methods=["GET"])
def login():
    state = oauth_service.new_state()
    try:
        target = oauth_service.build_authorize_url(_callback_url(), state)
    except oauth_service.OAuthNotConfiguredError:
        LOG.warning("login attempted without OAuth client configuration")
        flash(_("Sign-in is not configured."), "error")
        return redirect(url_for("auth.auth_page"))
    session[_STATE_KEY] = state
    session[_NEXT_KEY] = _safe_next(request.args.get("next"))
    return redirect(target)


@bp.route("/callback", methods=["GET"])
def callback():
    expected = session.pop(_STATE_KEY, None)
    next_url = session.pop(_NEXT_KEY, None) or url_for("store.index")
    if request.args.get("error"):
        LOG.info("provider returned error=%s", request.args.get("error"))
        flash(_("Sign-in was cancelled."), "error")
        return redirect(url_for("auth.auth_page"))
    try:
        user = oauth_service.complete_sign_in(
            code=request.args.get("code"),
            state=request.args.get("state"),
            expected_state=expected,
            redirect_uri=_callback_url(),
        )
    except oauth_service.OAuthStateError:
        flash(_("Sign-in request expired. Please try again."), "error")
        return redirect(url_for("auth.auth_page"))
    except oauth_service.OAuthError as exc:
        LOG.warning("sign-in failed: %s", exc)
        flash(_("Sign-in failed: %(reason)s", reason=str(exc)), "error")
        return redirect(url_for("auth.auth_page"))
    set_identity_session(user.id, user.email, user.full_name)
    return redirect(_safe_next(next_url))


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    clear_identity_session()
    return redirect(url_for("store.index"))


@bp.route("/api/session", methods=["GET"])
def api_session():
    if not is_authenticated():
        return jsonify({"authenticated": False, "is_admin": False})
    return jsonify(
        {
            "authenticated": True,
            "user_id": get_current_user_id(),
            "email": get_current_user_email(),
            "is_admin": is_admin_user(),
        }
    )


def register_auth(app) -> None:
    if not getattr(app, "_auth_bp", None):
        app.register_blueprint(bp)
        setattr(app, "_auth_bp", bp)


__all__ = ["register_auth", "bp"]
