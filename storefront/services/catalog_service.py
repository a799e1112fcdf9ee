"""Catalog reads and admin catalog management.

Book creation writes two objects and one row. The steps are not atomic, so
each later failure removes the objects already written before the error is
surfaced. Deletion removes the row first; object cleanup afterwards is
best-effort and never rolls the row back.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from typing import IO, Any, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.datastructures import FileStorage

from storefront.db.models import Book
from storefront.db.repositories import books_repo
from storefront.services import storage_service
from storefront.services.storage_service import PRIVATE_BUCKET, PUBLIC_BUCKET, StorageError
from storefront.utils.logging import get_logger

LOG = get_logger("catalog_service")

PDF_EXTENSIONS = {"pdf"}
THUMBNAIL_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}

# Uploads must carry a filename; the extension is validated before writing.
NamedUpload = Union[FileStorage, IO[bytes]]


class CatalogValidationError(ValueError):
    """Raised when book payload fails validation."""


class BookNotFoundError(RuntimeError):
    """Raised when a book id cannot be located."""


class CatalogWriteError(RuntimeError):
    """Raised when a storage or database write fails; message is the raw cause."""


@dataclass
class BookView:
    id: int
    title: str
    description: str
    price: int
    thumbnail_path: Optional[str]
    thumbnail_url: Optional[str]
    created_at: Optional[str]


@dataclass
class DeleteResult:
    book_id: int
    deleted: bool
    storage_errors: List[str] = field(default_factory=list)


def book_to_view(book: Book) -> BookView:
    thumbnail_url = None
    if book.thumbnail_path:
        thumbnail_url = storage_service.public_url(PUBLIC_BUCKET, book.thumbnail_path)
    return BookView(
        id=book.id,
        title=book.title,
        description=book.description or "",
        price=int(book.price or 0),
        thumbnail_path=book.thumbnail_path,
        thumbnail_url=thumbnail_url,
        created_at=book.created_at.isoformat() if book.created_at else None,
    )


def list_books() -> List[Dict[str, Any]]:
    """Newest first; a failed read degrades to an empty catalog."""
    try:
        books = books_repo.list_books()
    except SQLAlchemyError as exc:
        LOG.warning("catalog read failed; serving empty list: %s", exc)
        return []
    return [asdict(book_to_view(b)) for b in books]


def get_book(book_id: int) -> Dict[str, Any]:
    book = books_repo.get_book(book_id)
    if not book:
        raise BookNotFoundError("book_missing")
    return asdict(book_to_view(book))


def _clean_text(value: Any, code: str) -> str:
    cleaned = (value or "").strip() if isinstance(value, str) else ""
    if not cleaned:
        raise CatalogValidationError(code)
    return cleaned


def parse_price(value: Any) -> int:
    """Whole currency units, zero or more. Fractions are rejected, not rounded."""
    if isinstance(value, bool) or value is None:
        raise CatalogValidationError("price_invalid")
    if isinstance(value, int):
        price = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise CatalogValidationError("price_invalid")
        price = int(value)
    elif isinstance(value, str):
        try:
            price = int(value.strip())
        except ValueError as exc:
            raise CatalogValidationError("price_invalid") from exc
    else:
        raise CatalogValidationError("price_invalid")
    if price < 0:
        raise CatalogValidationError("price_invalid")
    return price


def _upload_name(upload: Any) -> str:
    if isinstance(upload, FileStorage):
        return upload.filename or ""
    return getattr(upload, "filename", None) or getattr(upload, "name", None) or ""


def _has_upload(upload: Any) -> bool:
    if upload is None:
        return False
    if isinstance(upload, FileStorage):
        return bool(upload.filename)
    return True


def _check_extension(upload: Any, allowed: set, code: str) -> str:
    name = os.path.basename(_upload_name(upload))
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if ext not in allowed:
        raise CatalogValidationError(code)
    return name


def _compensate(written: List[tuple]) -> None:
    for bucket, path in reversed(written):
        failures = storage_service.remove(bucket, [path])
        if failures:
            LOG.error("compensation failed; orphan object bucket=%s path=%s", bucket, path)
        else:
            LOG.info("compensation removed object bucket=%s path=%s", bucket, path)


def create_book(
    title: Any,
    description: Any,
    price: Any,
    pdf: Optional[NamedUpload],
    thumbnail: Optional[NamedUpload],
) -> Dict[str, Any]:
    title_clean = _clean_text(title, "title_required")
    description_clean = _clean_text(description, "description_required")
    price_value = parse_price(price)
    if not _has_upload(pdf):
        raise CatalogValidationError("pdf_required")
    if not _has_upload(thumbnail):
        raise CatalogValidationError("thumbnail_required")
    pdf_name = _check_extension(pdf, PDF_EXTENSIONS, "pdf_invalid")
    thumb_name = _check_extension(thumbnail, THUMBNAIL_EXTENSIONS, "thumbnail_invalid")

    written: List[tuple] = []
    try:
        thumbnail_path = storage_service.upload(PUBLIC_BUCKET, thumb_name, thumbnail)  # type: ignore[arg-type]
        written.append((PUBLIC_BUCKET, thumbnail_path))
        pdf_path = storage_service.upload(PRIVATE_BUCKET, pdf_name, pdf)  # type: ignore[arg-type]
        written.append((PRIVATE_BUCKET, pdf_path))
        book = books_repo.create_book(
            title_clean,
            description_clean,
            price_value,
            pdf_path,
            thumbnail_path=thumbnail_path,
        )
    except (StorageError, SQLAlchemyError) as exc:
        LOG.error("create_book failed title=%s err=%s; compensating %s object(s)", title_clean, exc, len(written))
        _compensate(written)
        raise CatalogWriteError(str(exc)) from exc

    LOG.info("Created book id=%s title=%s price=%s", book.id, book.title, book.price)
    return {"book": asdict(book_to_view(book)), "status": "created"}


def update_book(
    book_id: int,
    title: Any,
    description: Any,
    price: Any,
    pdf: Optional[NamedUpload] = None,
    thumbnail: Optional[NamedUpload] = None,
) -> Dict[str, Any]:
    existing = books_repo.get_book(book_id)
    if not existing:
        raise BookNotFoundError("book_missing")
    fields: Dict[str, Any] = {
        "title": _clean_text(title, "title_required"),
        "description": _clean_text(description, "description_required"),
        "price": parse_price(price),
    }
    pdf_name = _check_extension(pdf, PDF_EXTENSIONS, "pdf_invalid") if _has_upload(pdf) else None
    thumb_name = (
        _check_extension(thumbnail, THUMBNAIL_EXTENSIONS, "thumbnail_invalid") if _has_upload(thumbnail) else None
    )

    written: List[tuple] = []
    replaced: List[tuple] = []
    try:
        if thumb_name:
            new_thumb = storage_service.upload(PUBLIC_BUCKET, thumb_name, thumbnail)  # type: ignore[arg-type]
            written.append((PUBLIC_BUCKET, new_thumb))
            fields["thumbnail_path"] = new_thumb
            if existing.thumbnail_path:
                replaced.append((PUBLIC_BUCKET, existing.thumbnail_path))
        if pdf_name:
            new_pdf = storage_service.upload(PRIVATE_BUCKET, pdf_name, pdf)  # type: ignore[arg-type]
            written.append((PRIVATE_BUCKET, new_pdf))
            fields["pdf_path"] = new_pdf
            replaced.append((PRIVATE_BUCKET, existing.pdf_path))
        book = books_repo.update_book(book_id, fields)
    except (StorageError, SQLAlchemyError) as exc:
        LOG.error("update_book failed id=%s err=%s", book_id, exc)
        _compensate(written)
        raise CatalogWriteError(str(exc)) from exc
    if book is None:
        _compensate(written)
        raise BookNotFoundError("book_missing")

    storage_errors: List[str] = []
    for bucket, path in replaced:
        storage_errors.extend(storage_service.remove(bucket, [path]))
    LOG.info("Updated book id=%s replaced_objects=%s", book_id, len(replaced))
    return {"book": asdict(book_to_view(book)), "status": "updated", "storage_errors": storage_errors}


def delete_book(book_id: int) -> DeleteResult:
    try:
        book = books_repo.delete_book(book_id)
    except SQLAlchemyError as exc:
        LOG.error("delete_book failed id=%s err=%s", book_id, exc)
        raise CatalogWriteError(str(exc)) from exc
    if not book:
        raise BookNotFoundError("book_missing")
    storage_errors = storage_service.remove(PRIVATE_BUCKET, [book.pdf_path])
    storage_errors.extend(storage_service.remove(PUBLIC_BUCKET, [book.thumbnail_path]))
    if storage_errors:
        LOG.warning("Deleted book id=%s but objects remain: %s", book_id, storage_errors)
    else:
        LOG.info("Deleted book id=%s", book_id)
    return DeleteResult(book_id=book_id, deleted=True, storage_errors=storage_errors)


__all__ = [
    "CatalogValidationError",
    "BookNotFoundError",
    "CatalogWriteError",
    "BookView",
    "DeleteResult",
    "NamedUpload",
    "book_to_view",
    "list_books",
    "get_book",
    "parse_price",
    "create_book",
    "update_book",
    "delete_book",
]
