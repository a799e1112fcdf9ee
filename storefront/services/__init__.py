"""Service exports."""

from . import (
    access_gate,
    catalog_service,
    chat_service,
    oauth_service,
    purchase_service,
    realtime,
    storage_service,
)

__all__ = [
    "access_gate",
    "catalog_service",
    "chat_service",
    "oauth_service",
    "purchase_service",
    "realtime",
    "storage_service",
]
