"""Public storefront and checkout.

Routes:
    /                                   -> catalog page
    /api/books                          -> catalog JSON
    /store/checkout/<id>                -> payment instructions (signed-in only)
    /store/checkout/<id>/confirm        -> "I have completed payment" form post
    /api/checkout/<id>                  -> payment instructions JSON
    /api/checkout/<id>/confirm          -> record pending purchase JSON
"""
from __future__ import annotations

from flask import Blueprint, flash, jsonify, redirect, render_template, url_for

from storefront.i18n import _
from storefront.routes.common import csrf, json_error, require_json, require_user
from storefront.services import catalog_service, purchase_service
from storefront.utils import get_current_user_id, is_admin_user
from storefront.utils.logging import get_logger

bp = Blueprint("store", __name__)
LOG = get_logger("routes.store")


@bp.route("/", methods=["GET"])
def index():
    books = catalog_service.list_books()
    return render_template("store.html", books=books, is_admin=is_admin_user())


@bp.route("/api/books", methods=["GET"])
def api_books():
    return jsonify({"books": catalog_service.list_books()})


@bp.route("/store/checkout/<int:book_id>", methods=["GET"])
def checkout_page(book_id: int):
    auth = require_user(prefer_redirect=True)
    if auth is not True:
        return auth
    try:
        checkout = purchase_service.begin_checkout(get_current_user_id(), book_id)
    except catalog_service.BookNotFoundError:
        flash(_("Book could not be found."), "error")
        return redirect(url_for("store.index"))
    return render_template("checkout.html", checkout=checkout)


@bp.route("/store/checkout/<int:book_id>/confirm", methods=["POST"])
def checkout_confirm(book_id: int):
    auth = require_user(prefer_redirect=True)
    if auth is not True:
        return auth
    try:
        purchase_service.confirm_payment(get_current_user_id(), book_id)
    except catalog_service.BookNotFoundError:
        flash(_("Book could not be found."), "error")
        return redirect(url_for("store.index"))
    except purchase_service.PurchaseWriteError as exc:
        flash(_("Error recording purchase. Please contact support. (%(reason)s)", reason=str(exc)), "error")
        return redirect(url_for("store.checkout_page", book_id=book_id))
    flash(
        _("Your request is being processed. Once verified by Admin, the book will appear in your Library."),
        "success",
    )
    return redirect(url_for("store.index"))


@bp.route("/api/checkout/<int:book_id>", methods=["GET"])
def api_checkout(book_id: int):
    auth = require_user()
    if auth is not True:
        return auth
    try:
        checkout = purchase_service.begin_checkout(get_current_user_id(), book_id)
    except catalog_service.BookNotFoundError:
        return json_error("book_missing", 404)
    return jsonify({"checkout": checkout.to_payload()})


@bp.route("/api/checkout/<int:book_id>/confirm", methods=["POST"])
@csrf.exempt
def api_checkout_confirm(book_id: int):
    auth = require_user()
    if auth is not True:
        return auth
    body = require_json()
    if body is not True:
        return body
    try:
        result = purchase_service.confirm_payment(get_current_user_id(), book_id)
    except catalog_service.BookNotFoundError:
        return json_error("book_missing", 404)
    except purchase_service.PurchaseWriteError as exc:
        return json_error("purchase_failed", 500, details={"reason": str(exc)})
    return jsonify(result), 201


def register_store(app) -> None:
    if not getattr(app, "_store_bp", None):
        app.register_blueprint(bp)
        setattr(app, "_store_bp", bp)


__all__ = ["register_store", "bp"]
