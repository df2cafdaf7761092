#!/usr/bin/env python3

"""Per-profile cookie persistence."""

from pathlib import Path
from typing import Dict, List, Optional
import json
import logging


class CredentialStore:
    """Stores one cookie mapping per named profile.

    Layout::

        <config_dir>/profiles/<profile>/session.json

    A legacy ``<config_dir>/session.json`` from older releases is moved into
    the ``default`` profile the first time a store is created.
    """

    SESSION_FILENAME = "session.json"
    DEFAULT_PROFILE = "default"

    def __init__(
        self,
        config_dir: Path,
        profile: str = DEFAULT_PROFILE,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger("CredentialStore")
        self.config_dir = Path(config_dir)
        self.profile = profile
        self._migrate_legacy_session()

    @property
    def profiles_dir(self) -> Path:
        return self.config_dir / "profiles"

    @property
    def profile_dir(self) -> Path:
        return self.profiles_dir / self.profile

    @property
    def session_file(self) -> Path:
        return self.profile_dir / self.SESSION_FILENAME

    def _migrate_legacy_session(self) -> None:
        old_file = self.config_dir / self.SESSION_FILENAME
        new_file = self.profiles_dir / self.DEFAULT_PROFILE / self.SESSION_FILENAME
        if old_file.exists() and not new_file.exists():
            new_file.parent.mkdir(parents=True, exist_ok=True)
            old_file.rename(new_file)
            self.logger.info(f"Moved legacy session file to {new_file}")

    def load(self) -> Optional[Dict[str, str]]:
        """Return the stored cookies, or None when absent or unreadable."""
        if not self.session_file.exists():
            return None
        try:
            with open(self.session_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.debug(f"Could not read {self.session_file}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def save(self, cookies: Dict[str, str]) -> None:
        self.profile_dir.mkdir(parents=True, exist_ok=True)
        with open(self.session_file, "w", encoding="utf-8") as f:
            json.dump(cookies, f, indent=2, ensure_ascii=False)
        self.logger.debug(f"Saved {len(cookies)} cookies to {self.session_file}")

    def clear(self) -> None:
        if self.session_file.exists():
            self.session_file.unlink()
            self.logger.debug(f"Removed {self.session_file}")

    def list_profiles(self) -> List[str]:
        """Names of the profiles that currently hold a session file."""
        if not self.profiles_dir.exists():
            return []
        return sorted(
            entry.name
            for entry in self.profiles_dir.iterdir()
            if (entry / self.SESSION_FILENAME).exists()
        )
