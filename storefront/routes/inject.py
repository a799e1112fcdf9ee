"""Blueprint registration.

Called from startup to register every storefront blueprint plus the
request hooks shared by the presentation shell.
"""
from __future__ import annotations

from typing import Any

from .admin import register_admin
from .auth import register_auth
from .chat import register_chat
from .health import register_health
from .library import register_library
from .storage import register_storage
from .store import register_store
from storefront.utils import get_current_user_email, is_admin_user, is_authenticated


def _shell_context() -> dict:
    # Recomputed per request so an admin address change takes effect at once.
    return {
        "current_email": get_current_user_email(),
        "signed_in": is_authenticated(),
        "show_admin_link": is_admin_user(),
    }


def register_all(app: Any) -> None:
    register_store(app)
    register_auth(app)
    register_library(app)
    register_storage(app)
    register_admin(app)
    register_chat(app)
    register_health(app)
    app.context_processor(_shell_context)


__all__ = ["register_all"]
