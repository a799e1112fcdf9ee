"""Tests for filesystem object storage and signed link tokens."""
from __future__ import annotations

import io

import pytest  # type: ignore[import-not-found]
from flask import Flask

from storefront.services import storage_service
from storefront.services.storage_service import PRIVATE_BUCKET, PUBLIC_BUCKET


@pytest.fixture(autouse=True)
def storage_root(monkeypatch, tmp_path):
    root = tmp_path / "objects"
    monkeypatch.setenv("STOREFRONT_STORAGE_ROOT", str(root))
    return root


@pytest.fixture
def app_context():
    app = Flask(__name__)
    app.config["SECRET_KEY"] = "storage-secret"
    with app.app_context():
        yield app


def test_upload_accepts_bytes_and_streams(storage_root):
    first = storage_service.upload(PRIVATE_BUCKET, "../My Book.pdf", b"one")
    second = storage_service.upload(PUBLIC_BUCKET, "cover.png", io.BytesIO(b"two"))

    assert first.endswith("-My_Book.pdf")
    assert (storage_root / PRIVATE_BUCKET / first).read_bytes() == b"one"
    assert (storage_root / PUBLIC_BUCKET / second).read_bytes() == b"two"


def test_unknown_bucket_rejected():
    with pytest.raises(storage_service.BucketNotFoundError):
        storage_service.upload("secrets", "a.pdf", b"x")


def test_object_paths_cannot_escape_bucket(storage_root):
    storage_service.upload(PUBLIC_BUCKET, "cover.png", b"x")

    with pytest.raises(storage_service.InvalidObjectPathError):
        storage_service.object_file(PUBLIC_BUCKET, "../books_private/anything.pdf")


def test_remove_reports_only_failures(storage_root, monkeypatch):
    keep = storage_service.upload(PRIVATE_BUCKET, "a.pdf", b"x")

    failures = storage_service.remove(PRIVATE_BUCKET, [keep, None, "never-existed.pdf", "../escape.pdf"])

    assert failures == ["../escape.pdf"]
    assert not (storage_root / PRIVATE_BUCKET / keep).exists()


def test_signed_token_round_trip_and_tamper(app_context):
    path = storage_service.upload(PRIVATE_BUCKET, "a.pdf", b"x")
    token = storage_service.create_signed_token(PRIVATE_BUCKET, path, 600)

    assert storage_service.resolve_signed_token(token) == (PRIVATE_BUCKET, path)
    with pytest.raises(storage_service.SignedUrlError):
        storage_service.resolve_signed_token(token[:-4] + "AAAA")


def test_signed_token_dies_with_secret_rotation(app_context):
    path = storage_service.upload(PRIVATE_BUCKET, "a.pdf", b"x")
    token = storage_service.create_signed_token(PRIVATE_BUCKET, path, 600)

    app_context.config["SECRET_KEY"] = "rotated"

    with pytest.raises(storage_service.SignedUrlError):
        storage_service.resolve_signed_token(token)


def test_signed_token_requires_existing_object_and_positive_ttl(app_context):
    with pytest.raises(storage_service.ObjectNotFoundError):
        storage_service.create_signed_token(PRIVATE_BUCKET, "nothing.pdf", 600)
    path = storage_service.upload(PRIVATE_BUCKET, "a.pdf", b"x")
    with pytest.raises(storage_service.SignedUrlError):
        storage_service.create_signed_token(PRIVATE_BUCKET, path, 0)


def test_private_bucket_has_no_public_url():
    with pytest.raises(storage_service.StorageError):
        storage_service.public_url(PRIVATE_BUCKET, "a.pdf")
