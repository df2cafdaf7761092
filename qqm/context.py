#!/usr/bin/env python3

from typing import Optional
import logging

from qqm.auth import AuthManager
from qqm.client import ApiClient
from qqm.config import ConfigManager
from qqm.content_fetcher import ContentFetcher
from qqm.player import MpvPlayer
from qqm.processor import TrackProcessor
from qqm.storage import CredentialStore
from qqm.thread_manager import ThreadManager


class AppContext:
    """Wires the components for one profile.

    Built once per process from a :class:`ConfigManager`. Nothing in the
    package reaches for module-level instances; commands receive the
    context and use its members.
    """

    def __init__(self, config: ConfigManager, logger: Optional[logging.Logger] = None):
        """Initialize every component for ``config.profile``.

        Args:
            config: Resolved configuration.
            logger: Optional parent logger; components get child loggers.
        """
        self.config = config
        self.logger = logger or logging.getLogger("qqm")

        self.store = CredentialStore(
            config.config_dir,
            profile=config.profile,
            logger=self.logger.getChild("CredentialStore"),
        )
        self.auth = AuthManager(self.store, logger=self.logger.getChild("AuthManager"))
        self.client = ApiClient(
            self.auth,
            timeout=config.request_timeout,
            download_timeout=config.download_timeout,
            variant=config.api_variant,
            logger=self.logger.getChild("ApiClient"),
        )
        self.processor = TrackProcessor(logger=self.logger.getChild("TrackProcessor"))
        self.thread_manager = ThreadManager(logger=self.logger.getChild("ThreadManager"))
        self.fetcher = ContentFetcher(
            self.client,
            self.processor,
            self.thread_manager,
            logger=self.logger.getChild("ContentFetcher"),
        )
        self.player = MpvPlayer(
            endpoint=config.ipc_endpoint,
            mpv_path=config.mpv_path,
            logger=self.logger.getChild("MpvPlayer"),
        )

    @property
    def profile(self) -> str:
        return self.config.profile

    def for_profile(self, profile: str) -> "AppContext":
        """Build a fresh context bound to another profile."""
        return AppContext(self.config.with_profile(profile), logger=self.logger)

    def close(self) -> None:
        self.thread_manager.shutdown(wait=False)
        self.client.session.close()
