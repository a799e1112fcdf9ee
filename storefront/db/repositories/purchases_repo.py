"""Repository helpers for purchase records."""
from __future__ import annotations

from typing import List, Optional, Tuple

from storefront.db import app_session
from storefront.db.models import Book, PaymentStatus, Purchase, User


def create_purchase(user_id: str, book_id: int, status: str = PaymentStatus.PENDING.value) -> Purchase:
    purchase = Purchase(user_id=user_id, book_id=book_id, payment_status=status)
    with app_session() as session:
        session.add(purchase)
    return purchase


def get_purchase(purchase_id: int) -> Optional[Purchase]:
    with app_session() as session:
        return session.query(Purchase).filter(Purchase.id == purchase_id).one_or_none()


def list_purchases(status: Optional[str] = None) -> List[Tuple[Purchase, Optional[Book], Optional[str]]]:
    """All purchases, newest first, with their book and buyer email when known."""
    with app_session() as session:
        query = (
            session.query(Purchase, Book, User.email)
            .outerjoin(Book, Book.id == Purchase.book_id)
            .outerjoin(User, User.id == Purchase.user_id)
        )
        if status:
            query = query.filter(Purchase.payment_status == status)
        rows = query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()
        return [(purchase, book, email) for purchase, book, email in rows]


def list_purchases_for_user(user_id: str, status: Optional[str] = None) -> List[Tuple[Purchase, Book]]:
    with app_session() as session:
        query = (
            session.query(Purchase, Book)
            .join(Book, Book.id == Purchase.book_id)
            .filter(Purchase.user_id == user_id)
        )
        if status:
            query = query.filter(Purchase.payment_status == status)
        rows = query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()
        return [(purchase, book) for purchase, book in rows]


def has_purchase(user_id: str, book_id: int, status: str) -> bool:
    with app_session() as session:
        return (
            session.query(Purchase.id)
            .filter(
                Purchase.user_id == user_id,
                Purchase.book_id == book_id,
                Purchase.payment_status == status,
            )
            .first()
            is not None
        )


def set_status(purchase_id: int, status: str) -> Optional[Purchase]:
    with app_session() as session:
        purchase = session.query(Purchase).filter(Purchase.id == purchase_id).one_or_none()
        if not purchase:
            return None
        purchase.payment_status = status
        return purchase


def count_by_status(status: str) -> int:
    with app_session() as session:
        return session.query(Purchase).filter(Purchase.payment_status == status).count()


__all__ = [
    "create_purchase",
    "get_purchase",
    "list_purchases",
    "list_purchases_for_user",
    "has_purchase",
    "set_status",
    "count_by_status",
]
