"""Repository helpers for catalog book records."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from storefront.db import app_session
from storefront.db.models import Book

_UPDATABLE_FIELDS = {"title", "description", "price", "pdf_path", "thumbnail_path"}


def list_books() -> List[Book]:
    with app_session() as session:
        return (
            session.query(Book)
            .order_by(Book.created_at.desc(), Book.id.desc())
            .all()
        )


def get_book(book_id: int) -> Optional[Book]:
    with app_session() as session:
        return session.query(Book).filter(Book.id == book_id).one_or_none()


def count_books() -> int:
    with app_session() as session:
        return session.query(Book).count()


def create_book(
    title: str,
    description: str,
    price: int,
    pdf_path: str,
    thumbnail_path: Optional[str] = None,
) -> Book:
    book = Book(
        title=title,
        description=description,
        price=price,
        pdf_path=pdf_path,
        thumbnail_path=thumbnail_path,
    )
    with app_session() as session:
        session.add(book)
    return book


def update_book(book_id: int, fields: Dict[str, Any]) -> Optional[Book]:
    with app_session() as session:
        book = session.query(Book).filter(Book.id == book_id).one_or_none()
        if not book:
            return None
        for key, value in fields.items():
            if key in _UPDATABLE_FIELDS:
                setattr(book, key, value)
        return book


def delete_book(book_id: int) -> Optional[Book]:
    """Delete the row and return the detached record (paths still readable)."""
    with app_session() as session:
        book = session.query(Book).filter(Book.id == book_id).one_or_none()
        if not book:
            return None
        session.delete(book)
        return book


__all__ = [
    "list_books",
    "get_book",
    "count_books",
    "create_book",
    "update_book",
    "delete_book",
]
