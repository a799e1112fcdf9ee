"""Entitlement checks and signed download links for purchased books."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront import config as app_config
from storefront.db.models import PaymentStatus
from storefront.db.repositories import books_repo, purchases_repo
from storefront.services import storage_service
from storefront.services.storage_service import PRIVATE_BUCKET
from storefront.utils.logging import get_logger

LOG = get_logger("access_gate")


class AccessDeniedError(RuntimeError):
    """Raised when the user holds no completed purchase for the book."""


class DownloadUnavailableError(RuntimeError):
    """Raised when a signed link could not be issued for an entitled user."""


@dataclass(frozen=True)
class DownloadGrant:
    book_id: int
    url: str
    expires_in: int

    def to_payload(self) -> dict:
        return {"book_id": self.book_id, "url": self.url, "expires_in": self.expires_in}


def can_access(user_id: Optional[str], book_id: Optional[int]) -> bool:
    """True only when a ``completed`` purchase exists for (user, book)."""
    if not user_id or book_id is None:
        return False
    try:
        candidate = int(book_id)
    except (TypeError, ValueError):
        return False
    return purchases_repo.has_purchase(user_id, candidate, PaymentStatus.COMPLETED.value)


def request_download(user_id: Optional[str], book_id: int, expires_in: Optional[int] = None) -> DownloadGrant:
    """Issue a short-lived signed link to the book PDF for an entitled user.

    Denial is total: no link, partial or otherwise, is produced without a
    completed purchase.
    """
    try:
        entitled = can_access(user_id, book_id)
    except SQLAlchemyError as exc:
        LOG.warning("entitlement lookup failed user=%s book=%s: %s", user_id, book_id, exc)
        raise DownloadUnavailableError("entitlement_lookup_failed") from exc
    if not entitled:
        LOG.info("Download denied user=%s book=%s", user_id, book_id)
        raise AccessDeniedError("access_denied")

    try:
        book = books_repo.get_book(book_id)
    except SQLAlchemyError as exc:
        LOG.warning("book lookup failed user=%s book=%s: %s", user_id, book_id, exc)
        raise DownloadUnavailableError("book_lookup_failed") from exc
    if not book or not book.pdf_path:
        raise DownloadUnavailableError("book_missing")
    ttl = expires_in if expires_in is not None else app_config.signed_url_ttl()
    try:
        url = storage_service.create_signed_url(PRIVATE_BUCKET, book.pdf_path, ttl)
    except storage_service.StorageError as exc:
        LOG.warning("signed url failed user=%s book=%s: %s", user_id, book_id, exc)
        raise DownloadUnavailableError(str(exc)) from exc
    LOG.info("Issued signed download user=%s book=%s ttl=%s", user_id, book_id, ttl)
    return DownloadGrant(book_id=book.id, url=url, expires_in=ttl)


__all__ = [
    "AccessDeniedError",
    "DownloadUnavailableError",
    "DownloadGrant",
    "can_access",
    "request_download",
]
