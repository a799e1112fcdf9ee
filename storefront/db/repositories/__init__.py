"""Repository modules, one per table."""
from . import books_repo, messages_repo, purchases_repo, users_repo

__all__ = ["books_repo", "messages_repo", "purchases_repo", "users_repo"]
