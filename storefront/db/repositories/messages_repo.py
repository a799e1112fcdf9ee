"""Repository helpers for support chat messages (append-only)."""
from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import or_

from storefront.db import app_session
from storefront.db.models import Message


def create_message(
    sender_id: str,
    sender_email: Optional[str],
    recipient_id: str,
    content: str,
    is_admin: bool,
) -> Message:
    message = Message(
        sender_id=sender_id,
        sender_email=sender_email,
        recipient_id=recipient_id,
        content=content,
        is_admin=is_admin,
    )
    with app_session() as session:
        session.add(message)
    return message


def list_messages_for_participant(participant_id: str) -> List[Message]:
    """Messages sent by or addressed to the participant, oldest first."""
    with app_session() as session:
        return (
            session.query(Message)
            .filter(or_(Message.sender_id == participant_id, Message.recipient_id == participant_id))
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )


def list_non_admin_senders() -> List[Tuple[str, Optional[str]]]:
    with app_session() as session:
        rows = (
            session.query(Message.sender_id, Message.sender_email)
            .filter(Message.is_admin.is_(False))
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )
        return [(sender_id, sender_email) for sender_id, sender_email in rows]


__all__ = [
    "create_message",
    "list_messages_for_participant",
    "list_non_admin_senders",
]
