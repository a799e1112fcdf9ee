"""Buyer library: completed purchases and signed reading links."""
from __future__ import annotations

from flask import Blueprint, flash, jsonify, redirect, render_template, url_for

from storefront.routes.common import SECURITY_CLEARANCE_FAILED, csrf, json_error, require_json, require_user
from storefront.services import access_gate, purchase_service
from storefront.utils import get_current_user_id
from storefront.utils.logging import get_logger

bp = Blueprint("library", __name__, url_prefix="/library")
LOG = get_logger("routes.library")


@bp.route("/", methods=["GET"])
def library_page():
    auth = require_user(prefer_redirect=True)
    if auth is not True:
        return auth
    items = purchase_service.list_library(get_current_user_id())
    return render_template("library.html", items=items)


@bp.route("/api/books", methods=["GET"])
def api_books():
    auth = require_user()
    if auth is not True:
        return auth
    return jsonify({"items": purchase_service.list_library(get_current_user_id())})


@bp.route("/open/<int:book_id>", methods=["GET"])
def open_book(book_id: int):
    auth = require_user(prefer_redirect=True)
    if auth is not True:
        return auth
    try:
        grant = access_gate.request_download(get_current_user_id(), book_id)
    except (access_gate.AccessDeniedError, access_gate.DownloadUnavailableError):
        flash(SECURITY_CLEARANCE_FAILED, "error")
        return redirect(url_for("library.library_page"))
    return redirect(grant.url)


@bp.route("/api/<int:book_id>/signed-url", methods=["POST"])
@csrf.exempt
def api_signed_url(book_id: int):
    auth = require_user()
    if auth is not True:
        return auth
    body = require_json()
    if body is not True:
        return body
    # Denied and failed requests are indistinguishable to the caller.
    try:
        grant = access_gate.request_download(get_current_user_id(), book_id)
    except (access_gate.AccessDeniedError, access_gate.DownloadUnavailableError):
        return json_error("security_clearance_failed", 403)
    return jsonify(grant.to_payload())


def register_library(app) -> None:
    if not getattr(app, "_library_bp", None):
        app.register_blueprint(bp)
        setattr(app, "_library_bp", bp)


__all__ = ["register_library", "bp"]
