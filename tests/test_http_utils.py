#!/usr/bin/env python3

"""Tests for HTTP utility helpers."""

from qqm.constants import ORIGIN, USER_AGENT
from qqm.http_utils import cookie_header, ensure_origin_headers, sanitize_cookies


def test_sanitize_cookies_drops_none_values():
    assert sanitize_cookies({"uin": 123, "qm_keyst": None}) == {"uin": "123"}
    assert sanitize_cookies({"qm_keyst": None}) is None
    assert sanitize_cookies(None) is None


def test_cookie_header_joins_pairs():
    header = cookie_header({"qm_keyst": "Q_H_L_abc", "uin": "10001", "euin": None})
    assert header == "qm_keyst=Q_H_L_abc; uin=10001"


def test_cookie_header_empty():
    assert cookie_header({}) == ""
    assert cookie_header(None) == ""


def test_ensure_origin_headers_adds_defaults():
    headers = ensure_origin_headers()

    assert headers["User-Agent"] == USER_AGENT
    assert headers["Origin"] == ORIGIN
    assert headers["Referer"] == "https://c.y.qq.com/"
    assert headers["Content-Type"] == "application/json"


def test_ensure_origin_headers_keeps_existing_keys_case_insensitively():
    headers = ensure_origin_headers({"user-agent": "custom", "X-Extra": "1"})

    assert headers["user-agent"] == "custom"
    assert "User-Agent" not in headers
    assert headers["X-Extra"] == "1"
