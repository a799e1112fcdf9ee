"""Administrator console blueprint.

Routes:
    /admin/                              -> dashboard with counts
    /admin/books/                        -> catalog table
    /admin/books/new                     -> create form (multipart)
    /admin/books/<id>/edit               -> edit form
    /admin/books/<id>/delete             -> delete (form post)
    /admin/purchases/                    -> verification table, ?status= filter
    /admin/purchases/<id>/status         -> set status (form post)

JSON APIs mirror each page action under ``.../api/...``.

All routes enforce admin access server-side; hiding the admin link in the
shell is cosmetic only.
"""
from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, flash, jsonify, redirect, render_template, request, url_for

from storefront.i18n import _
from storefront.routes.common import csrf, error_message_for, json_error, require_admin, require_json
from storefront.services import catalog_service, purchase_service
from storefront.utils.logging import get_logger

bp = Blueprint("admin", __name__, url_prefix="/admin")
LOG = get_logger("routes.admin")

_STATUS_FILTERS = ("all", "pending", "completed", "failed")


def _require_admin_page():
    return require_admin(prefer_redirect=True)


def _form_payload() -> Dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True) or {}
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _flash_error(code: str) -> None:
    flash(error_message_for(code) or code, "error")


# ---------------------------------------------------------------- pages


@bp.route("/", methods=["GET"])
def dashboard():
    auth = _require_admin_page()
    if auth is not True:
        return auth
    return render_template("admin/dashboard.html", stats=purchase_service.dashboard_stats())


@bp.route("/books/", methods=["GET"])
def books_page():
    auth = _require_admin_page()
    if auth is not True:
        return auth
    return render_template("admin/books.html", books=catalog_service.list_books())


@bp.route("/books/new", methods=["GET", "POST"])
def book_new():
    auth = _require_admin_page()
    if auth is not True:
        return auth
    if request.method == "GET":
        return render_template("admin/book_form.html", book=None, form={})
    form = request.form.to_dict()
    try:
        catalog_service.create_book(
            form.get("title"),
            form.get("description"),
            form.get("price"),
            request.files.get("pdf"),
            request.files.get("thumbnail"),
        )
    except catalog_service.CatalogValidationError as exc:
        _flash_error(str(exc))
        return render_template("admin/book_form.html", book=None, form=form), 400
    except catalog_service.CatalogWriteError as exc:
        flash(_("Upload failed: %(reason)s", reason=str(exc)), "error")
        return render_template("admin/book_form.html", book=None, form=form), 500
    flash(_("Book created."), "success")
    return redirect(url_for("admin.books_page"))


@bp.route("/books/<int:book_id>/edit", methods=["GET", "POST"])
def book_edit(book_id: int):
    auth = _require_admin_page()
    if auth is not True:
        return auth
    try:
        book = catalog_service.get_book(book_id)
    except catalog_service.BookNotFoundError:
        _flash_error("book_missing")
        return redirect(url_for("admin.books_page"))
    if request.method == "GET":
        return render_template("admin/book_form.html", book=book, form=book)
    form = request.form.to_dict()
    try:
        result = catalog_service.update_book(
            book_id,
            form.get("title"),
            form.get("description"),
            form.get("price"),
            request.files.get("pdf"),
            request.files.get("thumbnail"),
        )
    except catalog_service.CatalogValidationError as exc:
        _flash_error(str(exc))
        return render_template("admin/book_form.html", book=book, form=form), 400
    except catalog_service.BookNotFoundError:
        _flash_error("book_missing")
        return redirect(url_for("admin.books_page"))
    except catalog_service.CatalogWriteError as exc:
        flash(_("Update failed: %(reason)s", reason=str(exc)), "error")
        return render_template("admin/book_form.html", book=book, form=form), 500
    if result["storage_errors"]:
        flash(_("Book updated, but old files could not be removed."), "warning")
    else:
        flash(_("Book updated."), "success")
    return redirect(url_for("admin.books_page"))


@bp.route("/books/<int:book_id>/delete", methods=["POST"])
def book_delete(book_id: int):
    auth = _require_admin_page()
    if auth is not True:
        return auth
    try:
        result = catalog_service.delete_book(book_id)
    except catalog_service.BookNotFoundError:
        _flash_error("book_missing")
        return redirect(url_for("admin.books_page"))
    except catalog_service.CatalogWriteError as exc:
        flash(_("Delete failed: %(reason)s", reason=str(exc)), "error")
        return redirect(url_for("admin.books_page"))
    if result.storage_errors:
        flash(_("Book deleted, but some files could not be removed."), "warning")
    else:
        flash(_("Book deleted."), "success")
    return redirect(url_for("admin.books_page"))


@bp.route("/purchases/", methods=["GET"])
def purchases_page():
    auth = _require_admin_page()
    if auth is not True:
        return auth
    status = (request.args.get("status") or "all").strip().lower()
    if status not in _STATUS_FILTERS:
        status = "all"
    purchases = purchase_service.list_purchases(None if status == "all" else status)
    return render_template(
        "admin/purchases.html",
        purchases=purchases,
        status=status,
        status_filters=_STATUS_FILTERS,
    )


@bp.route("/purchases/<int:purchase_id>/status", methods=["POST"])
def purchase_status(purchase_id: int):
    auth = _require_admin_page()
    if auth is not True:
        return auth
    try:
        purchase_service.update_status(purchase_id, request.form.get("status"))
    except purchase_service.PurchaseValidationError as exc:
        _flash_error(str(exc))
    except purchase_service.PurchaseNotFoundError:
        _flash_error("purchase_missing")
    except purchase_service.PurchaseWriteError as exc:
        flash(_("Update failed: %(reason)s", reason=str(exc)), "error")
    else:
        flash(_("Purchase updated."), "success")
    return redirect(url_for("admin.purchases_page", status=request.args.get("status") or "all"))


# ---------------------------------------------------------------- JSON APIs


@bp.route("/api/stats", methods=["GET"])
def api_stats():
    auth = require_admin()
    if auth is not True:
        return auth
    return jsonify(purchase_service.dashboard_stats())


@bp.route("/books/api/list", methods=["GET"])
def api_books_list():
    auth = require_admin()
    if auth is not True:
        return auth
    return jsonify({"books": catalog_service.list_books()})


@bp.route("/books/api/create", methods=["POST"])
def api_book_create():
    auth = require_admin()
    if auth is not True:
        return auth
    form = request.form
    try:
        result = catalog_service.create_book(
            form.get("title"),
            form.get("description"),
            form.get("price"),
            request.files.get("pdf"),
            request.files.get("thumbnail"),
        )
    except catalog_service.CatalogValidationError as exc:
        return json_error(str(exc), 400)
    except catalog_service.CatalogWriteError as exc:
        return json_error("write_failed", 500, message=str(exc))
    return jsonify(result), 201


@bp.route("/books/api/<int:book_id>/update", methods=["POST"])
def api_book_update(book_id: int):
    auth = require_admin()
    if auth is not True:
        return auth
    form = _form_payload()
    try:
        result = catalog_service.update_book(
            book_id,
            form.get("title"),
            form.get("description"),
            form.get("price"),
            request.files.get("pdf"),
            request.files.get("thumbnail"),
        )
    except catalog_service.CatalogValidationError as exc:
        return json_error(str(exc), 400)
    except catalog_service.BookNotFoundError:
        return json_error("book_missing", 404)
    except catalog_service.CatalogWriteError as exc:
        return json_error("write_failed", 500, message=str(exc))
    return jsonify(result)


@bp.route("/books/api/<int:book_id>", methods=["DELETE"])
@csrf.exempt
def api_book_delete(book_id: int):
    auth = require_admin()
    if auth is not True:
        return auth
    try:
        result = catalog_service.delete_book(book_id)
    except catalog_service.BookNotFoundError:
        return json_error("book_missing", 404)
    except catalog_service.CatalogWriteError as exc:
        return json_error("write_failed", 500, message=str(exc))
    return jsonify({"status": "deleted", "book_id": result.book_id, "storage_errors": result.storage_errors})


@bp.route("/purchases/api/list", methods=["GET"])
def api_purchases_list():
    auth = require_admin()
    if auth is not True:
        return auth
    status = request.args.get("status")
    if status and status.strip().lower() == "all":
        status = None
    try:
        purchases = purchase_service.list_purchases(status)
    except purchase_service.PurchaseValidationError as exc:
        return json_error(str(exc), 400)
    return jsonify({"purchases": purchases})


@bp.route("/purchases/api/<int:purchase_id>/status", methods=["POST"])
@csrf.exempt
def api_purchase_status(purchase_id: int):
    auth = require_admin()
    if auth is not True:
        return auth
    body = require_json()
    if body is not True:
        return body
    payload = request.get_json(silent=True) or {}
    try:
        result = purchase_service.update_status(purchase_id, payload.get("status"))
    except purchase_service.PurchaseValidationError as exc:
        return json_error(str(exc), 400)
    except purchase_service.PurchaseNotFoundError:
        return json_error("purchase_missing", 404)
    except purchase_service.PurchaseWriteError as exc:
        return json_error("write_failed", 500, message=str(exc))
    return jsonify(result)


def register_admin(app) -> None:
    if not getattr(app, "_admin_bp", None):
        app.register_blueprint(bp)
        setattr(app, "_admin_bp", bp)


__all__ = ["register_admin", "bp"]
