"""Support chat endpoints.

Buyers see only their own thread. The administrator sees the roster of
buyers who wrote in and opens one thread at a time with ``?user=<id>``.
``/chat/api/stream`` is a server-sent event stream of inserts filtered to
the open thread.
"""
from __future__ import annotations

import json

from flask import Blueprint, Response, current_app, jsonify, render_template, request, stream_with_context

from storefront.routes.common import csrf, json_error, require_admin, require_json, require_user
from storefront.services import chat_service
from storefront.utils import get_current_user_email, get_current_user_id, is_admin_user
from storefront.utils.logging import get_logger

bp = Blueprint("chat", __name__, url_prefix="/chat")
LOG = get_logger("routes.chat")

DEFAULT_KEEPALIVE_SECONDS = 15


def _participant_arg():
    value = (request.args.get("user") or "").strip()
    return value or None


@bp.route("/", methods=["GET"])
def chat_page():
    auth = require_user(prefer_redirect=True)
    if auth is not True:
        return auth
    admin = is_admin_user()
    participant = _participant_arg() if admin else None
    return render_template(
        "chat.html",
        is_admin=admin,
        participant=participant,
        conversations=chat_service.list_conversations() if admin else [],
        messages=chat_service.list_thread(get_current_user_id(), admin, participant),
    )


@bp.route("/api/messages", methods=["GET"])
def api_messages():
    auth = require_user()
    if auth is not True:
        return auth
    admin = is_admin_user()
    messages = chat_service.list_thread(get_current_user_id(), admin, _participant_arg())
    return jsonify({"messages": messages})


@bp.route("/api/send", methods=["POST"])
@csrf.exempt
def api_send():
    auth = require_user()
    if auth is not True:
        return auth
    body = require_json()
    if body is not True:
        return body
    payload = request.get_json(silent=True)
    payload = payload if isinstance(payload, dict) else {}
    try:
        message = chat_service.send_message(
            get_current_user_id(),
            get_current_user_email(),
            payload.get("content"),
            is_admin=is_admin_user(),
            recipient_id=payload.get("recipient_id"),
        )
    except chat_service.ChatValidationError as exc:
        return json_error(str(exc), 400)
    except chat_service.ChatWriteError as exc:
        return json_error("write_failed", 500, message=str(exc))
    return jsonify({"message": message}), 201


@bp.route("/api/conversations", methods=["GET"])
def api_conversations():
    auth = require_admin()
    if auth is not True:
        return auth
    return jsonify({"conversations": chat_service.list_conversations()})


def _sse(data: dict) -> str:
    return f"data: {json.dumps(data, separators=(',', ':'))}\n\n"


@bp.route("/api/stream", methods=["GET"])
def api_stream():
    auth = require_user()
    if auth is not True:
        return auth
    subscription = chat_service.open_thread_subscription(
        get_current_user_id(), is_admin_user(), _participant_arg()
    )
    keepalive = float(current_app.config.get("CHAT_STREAM_KEEPALIVE", DEFAULT_KEEPALIVE_SECONDS))

    def generate():
        try:
            yield ": connected\n\n"
            while not subscription.closed:
                change = subscription.get(timeout=keepalive)
                if change is None:
                    yield ": keepalive\n\n"
                    continue
                yield _sse(change.to_payload())
        finally:
            subscription.close()

    response = Response(stream_with_context(generate()), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    response.call_on_close(subscription.close)
    return response


def register_chat(app) -> None:
    if not getattr(app, "_chat_bp", None):
        app.register_blueprint(bp)
        setattr(app, "_chat_bp", bp)


__all__ = ["register_chat", "bp"]
