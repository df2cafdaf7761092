"""Shared constants for the qqm package."""

import sys
from typing import Dict, Tuple


API_URL = "https://u.y.qq.com/cgi-bin/musicu.fcg"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
ORIGIN = "https://y.qq.com"
API_REFERER = "https://c.y.qq.com/"
DOWNLOAD_REFERER = "https://y.qq.com/"
DEFAULT_STREAM_HOST = "https://dl.stream.qqmusic.qq.com/"
ALBUM_COVER_URL = "https://y.gtimg.cn/music/photo_new/T002R300x300M000{pmid}.jpg"

# Cookie holding the session key; a request is authenticated only when it is set.
SESSION_KEY_COOKIE = "qm_keyst"
COOKIE_NAMES: Tuple[str, ...] = (
    "qqmusic_key",
    "qm_keyst",
    "uin",
    "wxuin",
    "euin",
    "login_type",
    "tmeLoginType",
)
COOKIE_DOMAIN = "qq.com"

# The two deployment variants of the RPC endpoint. Only "signed" appends
# ?sign=... to the URL; "cookie" relies on the Cookie header alone.
API_VARIANT_SIGNED = "signed"
API_VARIANT_COOKIE = "cookie"
API_VARIANTS: Tuple[str, ...] = (API_VARIANT_SIGNED, API_VARIANT_COOKIE)

HEADER_CONSTANTS: Dict[str, Dict[str, int]] = {
    API_VARIANT_SIGNED: {"ct": 11, "needNewCode": 0},
    API_VARIANT_COOKIE: {"ct": 24, "needNewCode": 1},
}
CLIENT_VERSION = 4747474

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_DOWNLOAD_TIMEOUT = 120.0
DOWNLOAD_CHUNK_SIZE = 8192

# The service has no bulk track lookup; detail calls are issued in batches.
DETAIL_BATCH_SIZE = 10

if sys.platform == "win32":
    IPC_ENDPOINT = r"\\.\pipe\qqm-mpv"
else:
    IPC_ENDPOINT = "/tmp/qqm-mpv.sock"

IPC_TIMEOUT = 3.0
IPC_INITIAL_DELAY = 0.3
IPC_POLL_INTERVAL = 0.2
IPC_POLL_ATTEMPTS = 10
MAX_VOLUME = 150
DEFAULT_VOLUME = 100
