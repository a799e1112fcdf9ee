"""Flask-Babel wiring and a gettext wrapper safe outside configured apps."""
from __future__ import annotations

from pathlib import Path
from typing import Any

from flask_babel import Babel
from flask_babel import gettext as _babel_gettext

from storefront.utils.logging import get_logger

LOG = get_logger("i18n")

_TRANSLATIONS_DIR = Path(__file__).resolve().parents[1] / "translations"
DEFAULT_LOCALE = "en"


def _(message: str, **kwargs: Any) -> str:
    """Translate ``message``; falls back to %-formatting when Babel is not set up.

    Services and unit tests run without a Babel-configured app, in which
    case flask_babel raises on lookup.
    """
    try:
        return _babel_gettext(message, **kwargs)
    except (KeyError, RuntimeError, AttributeError):
        if kwargs:
            return message % kwargs
        return message


def configure_translations(app) -> None:
    if "babel" in getattr(app, "extensions", {}):
        return
    app.config.setdefault("BABEL_DEFAULT_LOCALE", DEFAULT_LOCALE)
    if _TRANSLATIONS_DIR.is_dir():
        app.config.setdefault("BABEL_TRANSLATION_DIRECTORIES", str(_TRANSLATIONS_DIR))
    Babel(app)
    LOG.debug("Flask-Babel configured default_locale=%s", app.config["BABEL_DEFAULT_LOCALE"])


__all__ = ["_", "configure_translations", "DEFAULT_LOCALE"]
