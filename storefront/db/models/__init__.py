"""ORM models aggregate exports."""
from .storefront import (  # noqa: F401
    ADMIN_INBOX_ID,
    Base,
    Book,
    Message,
    PaymentStatus,
    Purchase,
    User,
)

__all__ = [
    "ADMIN_INBOX_ID",
    "Base",
    "Book",
    "Message",
    "PaymentStatus",
    "Purchase",
    "User",
]
