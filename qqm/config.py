#!/usr/bin/env python3

from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging
import os

from qqm.constants import (
    API_VARIANT_SIGNED,
    API_VARIANTS,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    IPC_ENDPOINT,
)
from qqm.models import Quality


class ConfigManager:
    """Centralized configuration manager for qqm.

    Values come from three places, later ones winning: built-in defaults,
    an optional ``config.json`` in the config directory, and explicit
    constructor overrides (normally CLI flags).
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "qqm"
    DEFAULT_PROFILE = "default"
    CONFIG_FILENAME = "config.json"

    def __init__(
        self,
        config_dir: Optional[str] = None,
        profile: Optional[str] = None,
        request_timeout: Optional[float] = None,
        api_variant: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize with optional overrides for defaults."""
        self.logger = logger or logging.getLogger("ConfigManager")

        env_dir = os.environ.get("QQM_CONFIG_DIR")
        if config_dir:
            self.config_dir = Path(config_dir).expanduser()
        elif env_dir:
            self.config_dir = Path(env_dir).expanduser()
        else:
            self.config_dir = self.DEFAULT_CONFIG_DIR
        self.config_dir.mkdir(parents=True, exist_ok=True)

        file_settings = self._load_file_settings()

        self.profile = profile or self.DEFAULT_PROFILE
        self.request_timeout = float(
            request_timeout
            or file_settings.get("request_timeout")
            or DEFAULT_REQUEST_TIMEOUT
        )
        self.download_timeout = DEFAULT_DOWNLOAD_TIMEOUT
        self.api_variant = api_variant or file_settings.get(
            "api_variant", API_VARIANT_SIGNED
        )
        if self.api_variant not in API_VARIANTS:
            self.logger.warning(
                f"Unknown api_variant '{self.api_variant}', using '{API_VARIANT_SIGNED}'"
            )
            self.api_variant = API_VARIANT_SIGNED

        quality = file_settings.get("quality", Quality.HIGH.value)
        try:
            self.default_quality = Quality(quality)
        except ValueError:
            self.logger.warning(f"Unknown quality '{quality}', using 'high'")
            self.default_quality = Quality.HIGH

        self.mpv_path = file_settings.get("mpv_path", "mpv")
        self.ipc_endpoint = file_settings.get("ipc_endpoint", IPC_ENDPOINT)

    @property
    def profiles_dir(self) -> Path:
        return self.config_dir / "profiles"

    @property
    def profile_dir(self) -> Path:
        return self.profiles_dir / self.profile

    def _load_file_settings(self) -> Dict[str, Any]:
        """Read ``config.json`` if present; a broken file is logged and ignored."""
        config_file = self.config_dir / self.CONFIG_FILENAME
        if not config_file.exists():
            return {}
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
            return {}
        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring config file {config_file}: not an object")
            return {}
        return data

    def with_profile(self, profile: str) -> "ConfigManager":
        """Return a copy of this configuration bound to another profile."""
        return ConfigManager(
            config_dir=str(self.config_dir),
            profile=profile,
            request_timeout=self.request_timeout,
            api_variant=self.api_variant,
            logger=self.logger,
        )
