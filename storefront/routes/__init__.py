"""HTTP surface: Flask blueprints for the storefront."""

from .inject import register_all

__all__ = ["register_all"]
