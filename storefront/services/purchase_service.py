"""Purchase workflow and administrator verification.

Buyers move through ``idle -> selected -> awaiting_payment -> confirming``
and back to ``idle``. Payment happens outside the system through a UPI deep
link; the buyer's "I have completed payment" is recorded as a ``pending``
purchase that an administrator later marks ``completed`` or ``failed``.
The payment network is never queried.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError

from storefront import config as app_config
from storefront.db.models import Book, PaymentStatus, Purchase
from storefront.db.repositories import books_repo, purchases_repo
from storefront.services import catalog_service
from storefront.utils.identity import AuthenticationRequiredError
from storefront.utils.logging import get_logger

LOG = get_logger("purchase_service")

UPI_SCHEME_URL = "upi://pay"


class CheckoutStep(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMING = "confirming"


class PurchaseValidationError(ValueError):
    """Raised when a purchase payload fails validation."""


class PurchaseNotFoundError(RuntimeError):
    """Raised when a purchase id cannot be located."""


class PurchaseWriteError(RuntimeError):
    """Raised when recording a purchase fails; message is the raw cause."""


@dataclass
class CheckoutView:
    step: CheckoutStep
    book_id: int
    title: str
    amount: int
    currency: str
    payee_id: str
    payee_name: str
    note: str
    payment_link: str

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["step"] = self.step.value
        return payload


def payment_note(book: Book) -> str:
    return f"Purchase: {book.title}"


def build_payment_link(book: Book) -> str:
    """UPI deep link for ``book``; the amount is the stored price verbatim."""
    params = [
        ("pa", app_config.merchant_upi_id()),
        ("pn", app_config.merchant_name()),
        ("am", str(int(book.price))),
        ("cu", app_config.currency()),
        ("tn", payment_note(book)),
    ]
    return f"{UPI_SCHEME_URL}?{urlencode(params)}"


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthenticationRequiredError("Authentication required")
    return user_id


def _require_book(book_id: int) -> Book:
    book = books_repo.get_book(book_id)
    if not book:
        raise catalog_service.BookNotFoundError("book_missing")
    return book


def begin_checkout(user_id: Optional[str], book_id: int) -> CheckoutView:
    """Select a book and present payment instructions.

    Anonymous callers are rejected before anything is written so the
    route can send them to the auth gate.
    """
    _require_user(user_id)
    book = _require_book(book_id)
    LOG.debug("checkout selected user=%s book=%s", user_id, book.id)
    return CheckoutView(
        step=CheckoutStep.AWAITING_PAYMENT,
        book_id=book.id,
        title=book.title,
        amount=int(book.price),
        currency=app_config.currency(),
        payee_id=app_config.merchant_upi_id(),
        payee_name=app_config.merchant_name(),
        note=payment_note(book),
        payment_link=build_payment_link(book),
    )


def _purchase_view(purchase: Purchase, book: Optional[Book] = None, buyer_email: Optional[str] = None) -> Dict[str, Any]:
    view = purchase.as_dict()
    view["book"] = asdict(catalog_service.book_to_view(book)) if book else None
    view["buyer_email"] = buyer_email
    return view


def confirm_payment(user_id: Optional[str], book_id: int) -> Dict[str, Any]:
    """Record the buyer's self-reported payment as a pending purchase.

    Every call writes a new row; there is no deduplication per (user, book).
    """
    uid = _require_user(user_id)
    book = _require_book(book_id)
    try:
        purchase = purchases_repo.create_purchase(uid, book.id, PaymentStatus.PENDING.value)
    except SQLAlchemyError as exc:
        LOG.error("purchase write failed user=%s book=%s err=%s", uid, book.id, exc)
        raise PurchaseWriteError(str(exc)) from exc
    LOG.info("Recorded pending purchase id=%s user=%s book=%s", purchase.id, uid, book.id)
    return {"purchase": _purchase_view(purchase, book), "step": CheckoutStep.IDLE.value, "status": "pending"}


def list_library(user_id: str) -> List[Dict[str, Any]]:
    """Completed purchases for ``user_id`` with their books, newest first."""
    try:
        rows = purchases_repo.list_purchases_for_user(user_id, PaymentStatus.COMPLETED.value)
    except SQLAlchemyError as exc:
        LOG.warning("library read failed user=%s: %s", user_id, exc)
        return []
    return [_purchase_view(purchase, book) for purchase, book in rows]


def list_purchases(status: Optional[str] = None) -> List[Dict[str, Any]]:
    status_filter = None
    if status:
        parsed = PaymentStatus.parse(status)
        if parsed is None:
            raise PurchaseValidationError("status_invalid")
        status_filter = parsed.value
    try:
        rows = purchases_repo.list_purchases(status_filter)
    except SQLAlchemyError as exc:
        LOG.warning("purchase list read failed: %s", exc)
        return []
    return [_purchase_view(purchase, book, email) for purchase, book, email in rows]


def update_status(purchase_id: int, status: Any) -> Dict[str, Any]:
    """Overwrite the purchase status. Any status may follow any other."""
    parsed = PaymentStatus.parse(status)
    if parsed is None:
        raise PurchaseValidationError("status_invalid")
    try:
        purchase = purchases_repo.set_status(purchase_id, parsed.value)
    except SQLAlchemyError as exc:
        raise PurchaseWriteError(str(exc)) from exc
    if not purchase:
        raise PurchaseNotFoundError("purchase_missing")
    LOG.info("Purchase id=%s status set to %s", purchase_id, parsed.value)
    return {"purchase": purchase.as_dict(), "status": "updated"}


def dashboard_stats() -> Dict[str, int]:
    try:
        return {
            "books": books_repo.count_books(),
            "sales": purchases_repo.count_by_status(PaymentStatus.COMPLETED.value),
            "pending": purchases_repo.count_by_status(PaymentStatus.PENDING.value),
        }
    except SQLAlchemyError as exc:
        LOG.warning("dashboard stats read failed: %s", exc)
        return {"books": 0, "sales": 0, "pending": 0}


__all__ = [
    "CheckoutStep",
    "CheckoutView",
    "PurchaseValidationError",
    "PurchaseNotFoundError",
    "PurchaseWriteError",
    "build_payment_link",
    "payment_note",
    "begin_checkout",
    "confirm_payment",
    "list_library",
    "list_purchases",
    "update_status",
    "dashboard_stats",
]
