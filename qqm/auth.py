#!/usr/bin/env python3

"""Cookie-based authentication for the music service."""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import logging

from yt_dlp.cookies import extract_cookies_from_browser

from qqm.constants import COOKIE_DOMAIN, COOKIE_NAMES, SESSION_KEY_COOKIE
from qqm.errors import AuthError, QQMusicError
from qqm.http_utils import cookie_header
from qqm.models import UserProfile
from qqm.storage import CredentialStore


@dataclass
class AuthStatus:
    """Result of :meth:`AuthManager.check_auth`."""

    valid: bool
    credentials: Dict[str, bool]
    warnings: List[str] = field(default_factory=list)
    user_id: Optional[str] = None
    nickname: Optional[str] = None
    error: Optional[str] = None


class AuthManager:
    """Holds the active cookie set and keeps it in sync with the credential store.

    Cookies are loaded once at construction; :meth:`import_from_browser`
    replaces them wholesale and :meth:`logout` clears them.
    """

    def __init__(self, store: CredentialStore, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("AuthManager")
        self.store = store
        self.cookies: Optional[Dict[str, str]] = store.load()
        self.source: Optional[str] = None

    def import_from_browser(
        self, browser: str = "chrome", profile: Optional[str] = None
    ) -> Dict[str, str]:
        """Copy the service's login cookies out of a local browser profile.

        Args:
            browser: Browser name understood by yt-dlp (chrome, edge, firefox, safari, ...).
            profile: Optional browser profile name or path.

        Returns:
            The imported cookie mapping.

        Raises:
            AuthError: If the browser store can't be read or holds no session key.
        """
        warnings: List[str] = []
        try:
            jar = extract_cookies_from_browser(browser, profile)
        except Exception as e:
            self.logger.debug(f"Cookie extraction from {browser} failed: {e}")
            jar = []
            warnings.append(f"{browser}: {e}")

        cookie_data: Dict[str, str] = {}
        for cookie in jar:
            domain = (cookie.domain or "").lstrip(".")
            if not domain.endswith(COOKIE_DOMAIN):
                continue
            if cookie.name in COOKIE_NAMES and cookie.value is not None:
                cookie_data[cookie.name] = cookie.value

        if not cookie_data.get(SESSION_KEY_COOKIE):
            parts = ["Could not find QQ Music login cookies."]
            if warnings:
                parts.extend(["", "Warnings:"])
                parts.extend(f"  - {w}" for w in warnings)
            parts.extend(
                [
                    "",
                    "Options:",
                    "  1. Login to y.qq.com in Chrome, Edge, Firefox, or Safari",
                    "  2. Run `qqm auth login`",
                    "  3. Use --browser/--browser-profile to pick a specific browser profile",
                ]
            )
            raise AuthError("\n".join(parts), details={"browser": browser})

        for w in warnings:
            self.logger.info(f"Cookie import warning: {w}")

        self.cookies = cookie_data
        self.source = browser
        self.store.save(cookie_data)
        self.logger.info(f"Imported {len(cookie_data)} cookies from {browser}")
        return cookie_data

    def check_auth(self, fetch_profile: Callable[[], UserProfile]) -> AuthStatus:
        """Report which credentials are present and whether the session is live.

        Args:
            fetch_profile: Callable performing a live profile request; any
                :class:`QQMusicError` it raises marks the session invalid.
        """
        cookies = self.cookies or {}
        credentials = {
            "qm_keyst": bool(cookies.get(SESSION_KEY_COOKIE)),
            "uin": bool(cookies.get("uin") or cookies.get("wxuin")),
        }
        warnings: List[str] = []

        if self.cookies is None:
            warnings.append(
                "No session file found. Run `qqm auth login` to import cookies from your browser."
            )
            return AuthStatus(False, credentials, warnings, error="Not logged in")

        if not credentials["qm_keyst"]:
            warnings.append("Missing qm_keyst cookie, login session not found")
            return AuthStatus(False, credentials, warnings, error="Missing credentials")

        try:
            profile = fetch_profile()
        except QQMusicError as e:
            warnings.append(f"Session validation failed: {e.message}")
            return AuthStatus(False, credentials, warnings, error=e.message)

        return AuthStatus(
            True,
            credentials,
            warnings,
            user_id=profile.id,
            nickname=profile.nickname,
        )

    def is_authenticated(self) -> bool:
        return bool(self.cookies and self.cookies.get(SESSION_KEY_COOKIE))

    def get_cookies(self) -> Optional[Dict[str, str]]:
        return self.cookies

    def get_cookie_string(self) -> str:
        return cookie_header(self.cookies)

    @property
    def session_key(self) -> str:
        return (self.cookies or {}).get(SESSION_KEY_COOKIE) or ""

    @property
    def uin(self) -> str:
        cookies = self.cookies or {}
        return cookies.get("wxuin") or cookies.get("uin") or "0"

    @property
    def login_type(self) -> str:
        return str((self.cookies or {}).get("tmeLoginType") or "1")

    def logout(self) -> None:
        self.cookies = None
        self.source = None
        self.store.clear()
        self.logger.info(f"Cleared session for profile '{self.store.profile}'")
