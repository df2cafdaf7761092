#!/usr/bin/env python3

from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import requests

from qqm.auth import AuthManager
from qqm.constants import (
    API_URL,
    API_VARIANT_SIGNED,
    CLIENT_VERSION,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_REFERER,
    HEADER_CONSTANTS,
    USER_AGENT,
)
from qqm.errors import ApiError, ErrorKind, NetworkError, Result
from qqm.http_utils import ensure_origin_headers
from qqm.signer import canonical_json, session_token, sign_payload


class ApiClient:
    """Client for the single RPC endpoint of the music service.

    Every request is an envelope ``{"comm": <header>, "<name>": {module,
    method, param}, ...}``. The header carries the session token derived
    from the active cookies; in the signed API variant the serialized
    envelope is also signed and the signature appended to the URL.
    """

    def __init__(
        self,
        auth: AuthManager,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
        variant: str = API_VARIANT_SIGNED,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the API client.

        Args:
            auth: AuthManager supplying cookies and the session key.
            timeout: Request timeout in seconds.
            download_timeout: Timeout in seconds for streamed downloads.
            variant: ``"signed"`` or ``"cookie"``.
            logger: Optional logger instance.
        """
        self.logger = logger or logging.getLogger("ApiClient")
        self.auth = auth
        self.timeout = timeout
        self.download_timeout = download_timeout
        self.variant = variant
        self.session = requests.Session()
        self.session.headers.update(ensure_origin_headers())

    def update_timeout(self, seconds: float) -> None:
        self.timeout = seconds

    def build_header(self) -> Dict[str, Any]:
        """Return the ``comm`` block for the current credentials and variant."""
        token = session_token(self.auth.session_key)
        uin = self.auth.uin
        constants = HEADER_CONSTANTS[self.variant]
        return {
            "cv": CLIENT_VERSION,
            "ct": constants["ct"],
            "format": "json",
            "inCharset": "utf-8",
            "outCharset": "utf-8",
            "notice": 0,
            "platform": "yqq.json",
            "needNewCode": constants["needNewCode"],
            "uin": uin,
            "qq": uin,
            "authst": self.auth.session_key,
            "tmeLoginType": self.auth.login_type,
            "tmeAppID": "qqmusic",
            "g_tk_new_20200303": token,
            "g_tk": token,
        }

    def build_body(self, modules: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"comm": self.build_header()}
        body.update(modules)
        return body

    def send(self, modules: Dict[str, Dict[str, Any]]) -> Result:
        """Post one envelope and return the decoded response as a :class:`Result`.

        Args:
            modules: Mapping of call name (``req_0``...) to ``{module, method, param}``.

        Returns:
            ``Result.success(response_json)`` or a failure with kind NETWORK,
            AUTH or API.
        """
        body = self.build_body(modules)
        # The signature covers these exact bytes, so they are sent verbatim.
        payload = canonical_json(body)

        url = API_URL
        if self.variant == API_VARIANT_SIGNED:
            url = f"{API_URL}?sign={sign_payload(payload)}"

        self.logger.info(f"QQ Music API: {', '.join(modules)}")
        self.logger.debug(f"POST {url}")

        headers = {}
        cookie_string = self.auth.get_cookie_string()
        if cookie_string:
            headers["Cookie"] = cookie_string

        try:
            response = self.session.post(
                url,
                data=payload.encode("utf-8"),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            self.logger.debug(f"HTTP timeout: {e}")
            return Result.failure(ErrorKind.NETWORK, "Request timed out")
        except requests.exceptions.ConnectionError as e:
            self.logger.debug(f"HTTP connection error: {e}")
            return Result.failure(ErrorKind.NETWORK, "Network connection failed")
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            self.logger.debug(f"HTTP error: {status}")
            if status == 401:
                return Result.failure(
                    ErrorKind.AUTH,
                    "Authentication failed, please re-login",
                    {"status_code": status},
                )
            if status == 403:
                return Result.failure(
                    ErrorKind.AUTH,
                    "Access denied, login required or cookie expired",
                    {"status_code": status},
                )
            return Result.failure(
                ErrorKind.NETWORK, f"Request failed: {e}", {"status_code": status}
            )
        except requests.exceptions.RequestException as e:
            return Result.failure(ErrorKind.NETWORK, f"Request failed: {e}")

        try:
            data = response.json()
        except ValueError as e:
            self.logger.debug(f"Undecodable response body: {e}")
            return Result.failure(ErrorKind.API, "Invalid response from server")

        if not isinstance(data, dict):
            return Result.failure(ErrorKind.API, "Invalid response from server")

        code = data.get("code") or 0
        self.logger.debug(f"Response code: {code}")
        if code != 0:
            message = data.get("message") or "Unknown error"
            return Result.failure(
                ErrorKind.API, f"{message} (code: {code})", {"code": code}
            )

        return Result.success(data)

    def request(self, modules: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """Like :meth:`send` but raises on failure."""
        return self.send(modules).unwrap()

    def call(
        self,
        module: str,
        method: str,
        param: Optional[Dict[str, Any]] = None,
        name: str = "req_0",
    ) -> Dict[str, Any]:
        """Issue a single RPC and return its ``data`` section.

        Raises:
            ApiError: If the call itself reports a non-zero code.
        """
        response = self.request(
            {name: {"module": module, "method": method, "param": param or {}}}
        )
        section = response.get(name) or {}
        code = section.get("code") or 0
        if code != 0:
            raise ApiError(f"{module}.{method} failed (code: {code})", code=code)
        return section.get("data") or {}

    def download(self, url: str, dest: Union[str, Path]) -> int:
        """Stream ``url`` to ``dest`` and return the number of bytes written.

        Raises:
            NetworkError: On any transport failure. A partial file is removed.
        """
        dest_path = Path(dest)
        self.logger.info(f"Downloading {url}")
        headers = {"User-Agent": USER_AGENT, "Referer": DOWNLOAD_REFERER}
        written = 0
        try:
            with requests.get(
                url, headers=headers, stream=True, timeout=self.download_timeout
            ) as response:
                response.raise_for_status()
                with open(dest_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if not chunk:
                            continue
                        f.write(chunk)
                        written += len(chunk)
        except requests.exceptions.RequestException as e:
            if dest_path.exists():
                dest_path.unlink()
            raise NetworkError(
                f"Download failed: {e}", details={"url": url, "path": str(dest_path)}
            ) from e

        self.logger.debug(f"Wrote {written} bytes to {dest_path}")
        return written
