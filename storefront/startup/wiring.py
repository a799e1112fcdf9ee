"""Application initialization / wiring.

Orchestrates: config, DB init, CSRF, translations, template filters and
route registration.
"""
from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

from flask import Flask

from storefront import config as app_config
from storefront.db import init_engine_once
from storefront.i18n import configure_translations
from storefront.routes import register_all as register_routes
from storefront.routes.common import csrf
from storefront.utils.currency import register_currency_filters
from storefront.utils.logging import get_logger

LOG = get_logger("storefront.startup")


def _secret_key() -> str:
    key = app_config.secret_key()
    if key:
        return key
    LOG.warning("STOREFRONT_SECRET_KEY not set; using an ephemeral key (sessions and signed links reset on restart)")
    return secrets.token_hex(32)


def create_app(config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask("storefront", template_folder="templates")
    app.config.update(
        SECRET_KEY=_secret_key(),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        MAX_CONTENT_LENGTH=app_config.env_int("STOREFRONT_MAX_UPLOAD_MB", 100) * 1024 * 1024,
    )
    if config_overrides:
        app.config.update(config_overrides)

    init_engine_once()
    csrf.init_app(app)
    configure_translations(app)
    register_currency_filters(app)
    register_routes(app)

    LOG.info("storefront %s ready: %s", app_config.metadata()["version"], app_config.summarize_runtime_config())
    return app


__all__ = ["create_app"]
