#!/usr/bin/env python3

"""Utility helpers for building request headers and cookies."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from qqm.constants import API_REFERER, ORIGIN, USER_AGENT


def sanitize_cookies(
    cookies: Optional[Mapping[str, Any]]
) -> Optional[Dict[str, str]]:
    """Return a cookie mapping with ``None`` values dropped and values as strings.

    Cookie stores written by older versions may contain ``null`` entries;
    sending them would produce literal ``"None"`` values that the service
    treats as a broken session.
    """

    if not cookies:
        return None

    sanitized: Dict[str, str] = {}
    for key, value in cookies.items():
        if value is None:
            continue
        sanitized[str(key)] = str(value)

    return sanitized or None


def cookie_header(cookies: Optional[Mapping[str, Any]]) -> str:
    """Render cookies as a ``Cookie`` header value (``k=v; k=v``)."""

    sanitized = sanitize_cookies(cookies)
    if not sanitized:
        return ""
    return "; ".join(f"{key}={value}" for key, value in sanitized.items())


def ensure_origin_headers(headers: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """Augment *headers* with the defaults the API expects from the web player.

    Requests without a browser ``User-Agent`` and the ``y.qq.com`` origin are
    rejected by the gateway. Existing keys win regardless of case.
    """

    result: Dict[str, str] = {
        str(key): str(value) for key, value in (headers or {}).items() if value is not None
    }
    defaults = [
        ("User-Agent", USER_AGENT),
        ("Content-Type", "application/json"),
        ("Origin", ORIGIN),
        ("Referer", API_REFERER),
    ]

    existing_keys = {key.lower() for key in result}
    for name, value in defaults:
        if name.lower() in existing_keys:
            continue
        result[name] = value
        existing_keys.add(name.lower())

    return result
