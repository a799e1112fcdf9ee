"""Filesystem object storage with public and signed-access buckets.

Objects live under ``<storage_root>/<bucket>/<object path>``. The private
``books_private`` bucket is only reachable through short-lived signed links;
``thumbnails`` is served publicly. Signed links carry a Fernet token whose
key is derived from the Flask SECRET_KEY, so links die with a key rotation.
"""
from __future__ import annotations

import base64
import hashlib
import json
import time
from pathlib import Path
from typing import IO, Iterable, List, Optional, Tuple, Union

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app, url_for
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from storefront import config as app_config
from storefront.utils.logging import get_logger

LOG = get_logger("storage_service")

PRIVATE_BUCKET = "books_private"
PUBLIC_BUCKET = "thumbnails"
_BUCKETS = {
    PRIVATE_BUCKET: False,
    PUBLIC_BUCKET: True,
}
_KEY_CONTEXT = b"storefront-storage:"

UploadData = Union[FileStorage, bytes, IO[bytes]]


class StorageError(RuntimeError):
    """Base error for object storage failures."""


class BucketNotFoundError(StorageError):
    """Raised for an unknown bucket name."""


class ObjectNotFoundError(StorageError):
    """Raised when the object path does not resolve to a stored file."""


class InvalidObjectPathError(StorageError):
    """Raised when an object path escapes its bucket directory."""


class SignedUrlError(StorageError):
    """Raised when a signed link token cannot be honoured."""


class SignedUrlExpiredError(SignedUrlError):
    """Raised when a signed link outlived its validity window."""


def _now() -> float:
    return time.time()


def is_public_bucket(bucket: str) -> bool:
    if bucket not in _BUCKETS:
        raise BucketNotFoundError("bucket_not_found")
    return _BUCKETS[bucket]


def _storage_root() -> Path:
    return Path(app_config.storage_root()).resolve()


def _bucket_dir(bucket: str) -> Path:
    is_public_bucket(bucket)
    return _storage_root() / bucket


def _object_path(bucket: str, object_path: str) -> Path:
    cleaned = (object_path or "").strip().lstrip("/")
    if not cleaned:
        raise InvalidObjectPathError("object_path_required")
    base = _bucket_dir(bucket).resolve()
    candidate = (base / cleaned).resolve()
    if candidate == base or base not in candidate.parents:
        LOG.warning("storage path traversal guard triggered bucket=%s path=%s", bucket, object_path)
        raise InvalidObjectPathError("object_path_invalid")
    return candidate


def _new_object_name(directory: Path, filename: str) -> str:
    safe = secure_filename(filename or "") or "upload"
    stamp = int(_now() * 1000)
    name = f"{stamp}-{safe}"
    while (directory / name).exists():
        stamp += 1
        name = f"{stamp}-{safe}"
    return name


def upload(bucket: str, filename: str, data: UploadData) -> str:
    """Store ``data`` in ``bucket`` and return the new object path."""
    directory = _bucket_dir(bucket)
    directory.mkdir(mode=0o755, parents=True, exist_ok=True)
    name = _new_object_name(directory, filename)
    target = directory / name
    try:
        if isinstance(data, FileStorage):
            data.save(str(target))
        elif isinstance(data, (bytes, bytearray)):
            target.write_bytes(bytes(data))
        else:
            with target.open("wb") as fh:
                fh.write(data.read())
    except OSError as exc:
        LOG.error("upload failed bucket=%s name=%s err=%s", bucket, name, exc)
        raise StorageError(str(exc)) from exc
    LOG.info("Stored object bucket=%s path=%s bytes=%s", bucket, name, target.stat().st_size)
    return name


def remove(bucket: str, paths: Iterable[Optional[str]]) -> List[str]:
    """Delete objects; return the paths that could not be removed.

    Missing objects count as removed.
    """
    failures: List[str] = []
    for raw in paths:
        if not raw:
            continue
        try:
            target = _object_path(bucket, raw)
            target.unlink(missing_ok=True)
        except (StorageError, OSError) as exc:
            LOG.warning("object removal failed bucket=%s path=%s err=%s", bucket, raw, exc)
            failures.append(raw)
            continue
        LOG.info("Removed object bucket=%s path=%s", bucket, raw)
    return failures


def object_file(bucket: str, object_path: str) -> Path:
    target = _object_path(bucket, object_path)
    if not target.is_file():
        raise ObjectNotFoundError("object_not_found")
    return target


def public_url(bucket: str, object_path: str) -> str:
    if not is_public_bucket(bucket):
        raise StorageError("bucket_not_public")
    return url_for("storage.public_object", bucket=bucket, object_path=object_path)


def _derive_fernet_key(secret_value) -> bytes:
    if secret_value is None:
        raise SignedUrlError("secret_key_missing")
    if isinstance(secret_value, bytes):
        secret_bytes = secret_value
    else:
        secret_bytes = str(secret_value).encode("utf-8")
    digest = hashlib.sha256(_KEY_CONTEXT + secret_bytes).digest()
    return base64.urlsafe_b64encode(digest)


def _fernet() -> Fernet:
    return Fernet(_derive_fernet_key(current_app.config.get("SECRET_KEY")))


def create_signed_token(bucket: str, object_path: str, expires_in: int) -> str:
    if expires_in <= 0:
        raise SignedUrlError("expires_in_invalid")
    object_file(bucket, object_path)
    document = {"bucket": bucket, "path": object_path, "expires_in": int(expires_in)}
    token = _fernet().encrypt_at_time(
        json.dumps(document, sort_keys=True, separators=(",", ":")).encode("utf-8"),
        int(_now()),
    )
    return token.decode("utf-8")


def create_signed_url(bucket: str, object_path: str, expires_in: int) -> str:
    """Absolute link granting read access to one object for ``expires_in`` seconds."""
    token = create_signed_token(bucket, object_path, expires_in)
    return url_for("storage.signed_object", token=token, _external=True)


def resolve_signed_token(token: str) -> Tuple[str, str]:
    """Validate a signed link token and return ``(bucket, object_path)``."""
    if not token or not isinstance(token, str):
        raise SignedUrlError("token_required")
    fernet = _fernet()
    raw = token.encode("utf-8")
    try:
        issued_at = fernet.extract_timestamp(raw)
        decrypted = fernet.decrypt(raw)
    except InvalidToken as exc:
        LOG.warning("Rejected invalid signed storage token")
        raise SignedUrlError("invalid_token") from exc
    try:
        document = json.loads(decrypted.decode("utf-8"))
    except json.JSONDecodeError as exc:  # pragma: no cover - encrypted payload integrity
        raise SignedUrlError("invalid_payload") from exc
    bucket = document.get("bucket")
    object_path = document.get("path")
    expires_in = document.get("expires_in")
    if not isinstance(bucket, str) or not isinstance(object_path, str) or not isinstance(expires_in, int):
        raise SignedUrlError("invalid_payload")
    if _now() > issued_at + expires_in:
        raise SignedUrlExpiredError("signed_url_expired")
    return bucket, object_path


__all__ = [
    "PRIVATE_BUCKET",
    "PUBLIC_BUCKET",
    "StorageError",
    "BucketNotFoundError",
    "ObjectNotFoundError",
    "InvalidObjectPathError",
    "SignedUrlError",
    "SignedUrlExpiredError",
    "is_public_bucket",
    "upload",
    "remove",
    "object_file",
    "public_url",
    "create_signed_token",
    "create_signed_url",
    "resolve_signed_token",
]
