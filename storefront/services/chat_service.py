"""Two-party support chat between buyers and the administrator.

Buyers write to the ``SYSTEM`` inbox; the administrator replies to a chosen
buyer. A thread is everything a participant sent or received. The same
thread filter is applied to history and to live inserts, so a stream never
shows messages from another conversation.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.db.models import ADMIN_INBOX_ID
from storefront.db.repositories import messages_repo
from storefront.services import realtime
from storefront.utils.logging import get_logger

LOG = get_logger("chat_service")

MESSAGES_TABLE = "messages"
MAX_CONTENT_LENGTH = 4000


class ChatValidationError(ValueError):
    """Raised when a message payload fails validation."""


class ChatWriteError(RuntimeError):
    """Raised when storing a message fails; message is the raw cause."""


@dataclass(frozen=True)
class Conversation:
    user_id: str
    email: str


def thread_participant(viewer_id: str, is_admin: bool, participant_id: Optional[str] = None) -> Optional[str]:
    """Whose thread the viewer is looking at; None means no thread is open."""
    if is_admin:
        return participant_id or None
    return viewer_id


def belongs_to_thread(record: Dict[str, Any], participant_id: Optional[str]) -> bool:
    if not participant_id:
        return False
    return record.get("sender_id") == participant_id or record.get("recipient_id") == participant_id


def send_message(
    sender_id: str,
    sender_email: Optional[str],
    content: Any,
    *,
    is_admin: bool,
    recipient_id: Optional[str] = None,
) -> Dict[str, Any]:
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise ChatValidationError("content_required")
    if len(text) > MAX_CONTENT_LENGTH:
        raise ChatValidationError("content_too_long")
    if is_admin:
        target = (recipient_id or "").strip()
        if not target:
            raise ChatValidationError("recipient_required")
    else:
        target = ADMIN_INBOX_ID
    try:
        message = messages_repo.create_message(sender_id, sender_email, target, text, is_admin)
    except SQLAlchemyError as exc:
        LOG.error("message write failed sender=%s err=%s", sender_id, exc)
        raise ChatWriteError(str(exc)) from exc
    record = message.as_dict()
    delivered = realtime.publish(MESSAGES_TABLE, record)
    LOG.info("Message id=%s sender=%s recipient=%s delivered_live=%s", message.id, sender_id, target, delivered)
    return record


def list_thread(viewer_id: str, is_admin: bool, participant_id: Optional[str] = None) -> List[Dict[str, Any]]:
    participant = thread_participant(viewer_id, is_admin, participant_id)
    if not participant:
        return []
    try:
        messages = messages_repo.list_messages_for_participant(participant)
    except SQLAlchemyError as exc:
        LOG.warning("thread read failed participant=%s: %s", participant, exc)
        return []
    return [m.as_dict() for m in messages]


def list_conversations() -> List[Dict[str, str]]:
    """Buyers who have written in, grouped by sender id, first contact first."""
    try:
        rows = messages_repo.list_non_admin_senders()
    except SQLAlchemyError as exc:
        LOG.warning("conversation list read failed: %s", exc)
        return []
    seen: Dict[str, Conversation] = {}
    for sender_id, sender_email in rows:
        if sender_id in seen:
            continue
        seen[sender_id] = Conversation(user_id=sender_id, email=sender_email or "Unknown")
    return [asdict(c) for c in seen.values()]


def open_thread_subscription(
    viewer_id: str, is_admin: bool, participant_id: Optional[str] = None
) -> realtime.Subscription:
    """Subscribe to inserts for exactly one thread.

    With no thread open (admin on the roster) the subscription receives
    nothing.
    """
    participant = thread_participant(viewer_id, is_admin, participant_id)
    return realtime.subscribe(
        MESSAGES_TABLE,
        predicate=lambda record: belongs_to_thread(record, participant),
    )


__all__ = [
    "MESSAGES_TABLE",
    "ChatValidationError",
    "ChatWriteError",
    "Conversation",
    "thread_participant",
    "belongs_to_thread",
    "send_message",
    "list_thread",
    "list_conversations",
    "open_thread_subscription",
]
