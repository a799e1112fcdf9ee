from __future__ import annotations

from typing import Any

_SYMBOLS = {"INR": "₹"}


def _group_indian(digits: str) -> str:
    # Last three digits form one group, the rest are grouped by two (12,34,567).
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while head:
        groups.append(head[-2:])
        head = head[:-2]
    return ",".join(reversed(groups)) + "," + tail


def format_price(value: Any, currency: str = "INR") -> str:
    """Format an integer price for display: ``₹1,499``.

    Prices are whole currency units; anything that does not parse as an
    integer renders as an empty string.
    """
    if value is None or value == "" or isinstance(value, bool):
        return ""
    try:
        amount = int(value)
    except (TypeError, ValueError):
        return ""
    sign = "-" if amount < 0 else ""
    grouped = _group_indian(str(abs(amount)))
    symbol = _SYMBOLS.get((currency or "").upper())
    if symbol:
        return f"{sign}{symbol}{grouped}"
    return f"{sign}{grouped} {currency}".strip()


def register_currency_filters(app: Any) -> None:
    """Register custom Jinja filters used by storefront templates."""
    env = getattr(app, "jinja_env", None)
    if not env:
        return
    filters = getattr(env, "filters", None)
    if not isinstance(filters, dict):
        return
    if "format_price" not in filters:
        filters["format_price"] = format_price


__all__ = ["format_price", "register_currency_filters"]
