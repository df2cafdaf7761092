"""
qqm - QQ Music from the command line

Search, inspect and download tracks, manage the user library and control
a background mpv player.
"""

__version__ = "0.1.0"

from qqm.client import ApiClient
from qqm.content_fetcher import ContentFetcher
from qqm.context import AppContext
from qqm.player import MpvPlayer
from qqm.processor import TrackProcessor
