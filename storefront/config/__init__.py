"""Application configuration accessors.

Centralizes environment variable parsing & defaults. Values are read on
every call so operators can rotate settings (notably the administrator
address) without restarting workers.
"""
from __future__ import annotations

import os
from functools import lru_cache

APP_NAME = "storefront"
APP_VERSION = "0.4.0"
APP_DESCRIPTION = "Digital book storefront with manual UPI verification"

DEFAULT_DB_PATH = "storefront.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CURRENCY = "INR"
DEFAULT_SIGNED_URL_TTL = 600
DEFAULT_OAUTH_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
DEFAULT_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_OAUTH_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
DEFAULT_OAUTH_SCOPE = "openid email profile"
_TRUE = {"1", "true", "yes", "on"}


def _raw_env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default


def _stripped_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_bool(name: str, default: bool = False) -> bool:
    raw = _raw_env(name, str(default).lower())
    if raw is None:
        return default
    return raw.lower() in _TRUE


def env_int(name: str, default: int) -> int:
    raw = _stripped_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_db_path() -> str:
    raw = _raw_env("STOREFRONT_DB_PATH", DEFAULT_DB_PATH)
    if raw and raw != ":memory:" and not os.path.isabs(raw):
        data_dir = os.getenv("STOREFRONT_DATA_DIR")
        if data_dir:
            return os.path.join(data_dir, raw)
    return raw  # type: ignore[return-value]


def log_level_name() -> str:
    return _raw_env("STOREFRONT_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()  # type: ignore[union-attr]


def secret_key() -> str | None:
    """Flask SECRET_KEY; also seeds the signed storage link key."""
    return _stripped_env("STOREFRONT_SECRET_KEY")


def admin_email() -> str | None:
    """The single administrator address (STOREFRONT_ADMIN_EMAIL).

    Administrator status is derived by comparing the signed-in email to this
    value on each request; it is never persisted.
    """
    return _stripped_env("STOREFRONT_ADMIN_EMAIL")


def merchant_upi_id() -> str:
    return _stripped_env("STOREFRONT_MERCHANT_UPI_ID") or ""


def merchant_name() -> str:
    return _stripped_env("STOREFRONT_MERCHANT_NAME") or ""


def currency() -> str:
    return (_stripped_env("STOREFRONT_CURRENCY") or DEFAULT_CURRENCY).upper()


def storage_root() -> str:
    """Directory holding object storage buckets.

    Environment Variable: STOREFRONT_STORAGE_ROOT
    Default: ``storage`` under STOREFRONT_DATA_DIR (or the working directory).
    """
    explicit = _stripped_env("STOREFRONT_STORAGE_ROOT")
    if explicit:
        return explicit
    return os.path.join(os.getenv("STOREFRONT_DATA_DIR") or ".", "storage")


def signed_url_ttl() -> int:
    return env_int("STOREFRONT_SIGNED_URL_TTL", DEFAULT_SIGNED_URL_TTL)


def oauth_client_id() -> str | None:
    return _stripped_env("OAUTH_CLIENT_ID")


def oauth_client_secret() -> str | None:
    return _stripped_env("OAUTH_CLIENT_SECRET")


def oauth_authorize_url() -> str:
    return _stripped_env("OAUTH_AUTHORIZE_URL") or DEFAULT_OAUTH_AUTHORIZE_URL


def oauth_token_url() -> str:
    return _stripped_env("OAUTH_TOKEN_URL") or DEFAULT_OAUTH_TOKEN_URL


def oauth_userinfo_url() -> str:
    return _stripped_env("OAUTH_USERINFO_URL") or DEFAULT_OAUTH_USERINFO_URL


def oauth_scope() -> str:
    return _stripped_env("OAUTH_SCOPE") or DEFAULT_OAUTH_SCOPE


@lru_cache(maxsize=1)
def metadata() -> dict:
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "description": APP_DESCRIPTION,
    }


def summarize_runtime_config() -> dict:
    return {
        "db_path": get_db_path(),
        "log_level": log_level_name(),
        "storage_root": storage_root(),
        "currency": currency(),
        "signed_url_ttl": signed_url_ttl(),
        "admin_email_set": bool(admin_email()),
        "merchant_upi_id_set": bool(merchant_upi_id()),
        "oauth_client_set": bool(oauth_client_id()),
    }


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "env_bool",
    "env_int",
    "get_db_path",
    "log_level_name",
    "secret_key",
    "admin_email",
    "merchant_upi_id",
    "merchant_name",
    "currency",
    "storage_root",
    "signed_url_ttl",
    "oauth_client_id",
    "oauth_client_secret",
    "oauth_authorize_url",
    "oauth_token_url",
    "oauth_userinfo_url",
    "oauth_scope",
    "metadata",
    "summarize_runtime_config",
]
