"""Object delivery for public thumbnails and signed private links."""
from __future__ import annotations

from flask import Blueprint, abort, send_file

from storefront.services import storage_service
from storefront.utils.logging import get_logger

bp = Blueprint("storage", __name__, url_prefix="/storage")
LOG = get_logger("routes.storage")


@bp.route("/public/<bucket>/<path:object_path>", methods=["GET"])
def public_object(bucket: str, object_path: str):
    try:
        if not storage_service.is_public_bucket(bucket):
            abort(404)
        target = storage_service.object_file(bucket, object_path)
    except storage_service.StorageError:
        abort(404)
    response = send_file(str(target), max_age=3600)
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


@bp.route("/signed/<token>", methods=["GET"])
def signed_object(token: str):
    try:
        bucket, object_path = storage_service.resolve_signed_token(token)
    except storage_service.SignedUrlError as exc:
        LOG.info("signed link refused: %s", exc)
        abort(403)
    try:
        target = storage_service.object_file(bucket, object_path)
    except storage_service.StorageError:
        abort(404)
    response = send_file(str(target), mimetype="application/pdf", max_age=0)
    response.headers["Cache-Control"] = "private, no-store"
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def register_storage(app) -> None:
    if not getattr(app, "_storage_bp", None):
        app.register_blueprint(bp)
        setattr(app, "_storage_bp", bp)


__all__ = ["register_storage", "bp"]
