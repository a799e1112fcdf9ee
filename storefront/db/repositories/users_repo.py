"""Repository helpers for users mirrored from the OAuth provider."""
from __future__ import annotations

import datetime
from typing import Optional

from storefront.db import app_session
from storefront.db.models import User


def get_user(user_id: str) -> Optional[User]:
    with app_session() as session:
        return session.query(User).filter(User.id == user_id).one_or_none()


def upsert_user(user_id: str, email: str, full_name: Optional[str] = None) -> User:
    now = datetime.datetime.now(datetime.timezone.utc)
    with app_session() as session:
        user = session.query(User).filter(User.id == user_id).one_or_none()
        if user is None:
            user = User(id=user_id, email=email, full_name=full_name, created_at=now, last_sign_in_at=now)
            session.add(user)
        else:
            user.email = email
            if full_name:
                user.full_name = full_name
            user.last_sign_in_at = now
        return user


__all__ = ["get_user", "upsert_user"]
