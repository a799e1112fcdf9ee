"""ORM models for the storefront DB (catalog, purchases, chat, users)."""
from __future__ import annotations

import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

ADMIN_INBOX_ID = "SYSTEM"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _iso(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value else None


class PaymentStatus(str, Enum):
    """Purchase record states. Transitions are manual and unenforced."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: object) -> "PaymentStatus | None":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


class User(Base):
    """Identity mirrored from the OAuth provider at sign-in.

    Administrator status is derived from the configured address and is
    deliberately absent from this table.
    """

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    last_sign_in_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "created_at": _iso(self.created_at),
            "last_sign_in_at": _iso(self.last_sign_in_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email}>"


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Integer, nullable=False, default=0)
    pdf_path = Column(String(500), nullable=False)
    thumbnail_path = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "pdf_path": self.pdf_path,
            "thumbnail_path": self.thumbnail_path,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Book id={self.id} title={self.title!r} price={self.price}>"


class Purchase(Base):
    """One row per "I have completed payment" submission.

    No uniqueness on (user_id, book_id): repeated submissions produce
    independent pending rows.
    """

    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    book_id = Column(Integer, nullable=False, index=True)
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_purchases_user_book_status", "user_id", "book_id", "payment_status"),
    )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "payment_status": self.payment_status,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return (
            "<Purchase id={0} user_id={1} book_id={2} status={3}>".format(
                self.id,
                self.user_id,
                self.book_id,
                self.payment_status,
            )
        )


class Message(Base):
    """Support chat message. Append-only."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(String(255), nullable=False, index=True)
    sender_email = Column(String(255), nullable=True)
    recipient_id = Column(String(255), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "sender_email": self.sender_email,
            "recipient_id": self.recipient_id,
            "content": self.content,
            "is_admin": bool(self.is_admin),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Message id={self.id} sender={self.sender_id} recipient={self.recipient_id}>"


__all__ = [
    "Base",
    "ADMIN_INBOX_ID",
    "PaymentStatus",
    "User",
    "Book",
    "Purchase",
    "Message",
]
