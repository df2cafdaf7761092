#!/usr/bin/env python3

import json
import logging
import unittest
from unittest.mock import MagicMock, Mock, patch

import requests

from qqm.auth import AuthManager
from qqm.client import ApiClient
from qqm.constants import API_URL
from qqm.errors import ApiError, AuthError, ErrorKind, NetworkError
from qqm.signer import session_token, sign_payload

COOKIES = {"qm_keyst": "Q_H_L_63k3Nqlr3vQDnOFBUu_ZbF7c1mJgTn0xXtB6cHx0", "uin": "10001"}


def make_response(payload=None, status_code=200, json_error=None):
    response = Mock()
    response.status_code = status_code
    if status_code >= 400:
        error = requests.exceptions.HTTPError(f"{status_code} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    else:
        response.raise_for_status.return_value = None
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestApiClient(unittest.TestCase):
    """Test case for ApiClient."""

    def setUp(self):
        self.store = Mock()
        self.store.load.return_value = dict(COOKIES)
        self.logger = logging.getLogger("test")
        self.auth = AuthManager(self.store, logger=self.logger)
        self.client = ApiClient(self.auth, timeout=5, logger=self.logger)
        self.client.session = MagicMock()
        self.post = self.client.session.post

    def sent_body(self):
        return json.loads(self.post.call_args.kwargs["data"].decode("utf-8"))

    def test_header_fields(self):
        header = self.client.build_header()
        token = session_token(COOKIES["qm_keyst"])

        self.assertEqual(header["ct"], 11)
        self.assertEqual(header["needNewCode"], 0)
        self.assertEqual(header["cv"], 4747474)
        self.assertEqual(header["uin"], "10001")
        self.assertEqual(header["qq"], "10001")
        self.assertEqual(header["authst"], COOKIES["qm_keyst"])
        self.assertEqual(header["tmeLoginType"], "1")
        self.assertEqual(header["g_tk"], token)
        self.assertEqual(header["g_tk_new_20200303"], token)

    def test_header_without_cookies(self):
        self.auth.cookies = None
        header = self.client.build_header()

        self.assertEqual(header["uin"], "0")
        self.assertEqual(header["authst"], "")
        self.assertEqual(header["g_tk"], 5381)

    def test_signed_request_signs_exact_body(self):
        self.post.return_value = make_response({"code": 0, "req_0": {"code": 0}})

        result = self.client.send({"req_0": {"module": "m", "method": "f", "param": {}}})

        self.assertTrue(result.ok)
        url = self.post.call_args.args[0]
        payload = self.post.call_args.kwargs["data"].decode("utf-8")
        self.assertEqual(url, f"{API_URL}?sign={sign_payload(payload)}")
        self.assertEqual(
            self.post.call_args.kwargs["headers"]["Cookie"],
            "qm_keyst=" + COOKIES["qm_keyst"] + "; uin=10001",
        )
        self.assertEqual(self.post.call_args.kwargs["timeout"], 5)
        self.assertEqual(list(self.sent_body()), ["comm", "req_0"])

    def test_cookie_variant_is_unsigned(self):
        self.client.variant = "cookie"
        self.post.return_value = make_response({"code": 0})

        self.client.send({"req_0": {"module": "m", "method": "f", "param": {}}})

        self.assertEqual(self.post.call_args.args[0], API_URL)
        comm = self.sent_body()["comm"]
        self.assertEqual(comm["ct"], 24)
        self.assertEqual(comm["needNewCode"], 1)

    def test_no_cookie_header_when_logged_out(self):
        self.auth.cookies = None
        self.post.return_value = make_response({"code": 0})

        self.client.send({})

        self.assertNotIn("Cookie", self.post.call_args.kwargs["headers"])

    def test_error_mapping(self):
        cases = [
            (requests.exceptions.ConnectionError("refused"), ErrorKind.NETWORK,
             "Network connection failed"),
            (requests.exceptions.Timeout("slow"), ErrorKind.NETWORK, "Request timed out"),
        ]
        for exc, kind, message in cases:
            self.post.side_effect = exc
            result = self.client.send({})
            self.assertFalse(result.ok)
            self.assertEqual(result.kind, kind)
            self.assertEqual(result.message, message)

    def test_http_status_mapping(self):
        self.post.return_value = make_response(status_code=401)
        result = self.client.send({})
        self.assertEqual(result.kind, ErrorKind.AUTH)
        self.assertEqual(result.message, "Authentication failed, please re-login")

        self.post.return_value = make_response(status_code=403)
        result = self.client.send({})
        self.assertEqual(result.kind, ErrorKind.AUTH)
        self.assertEqual(
            result.message, "Access denied, login required or cookie expired"
        )

        self.post.return_value = make_response(status_code=500)
        result = self.client.send({})
        self.assertEqual(result.kind, ErrorKind.NETWORK)
        self.assertTrue(result.message.startswith("Request failed:"))

    def test_invalid_json(self):
        self.post.return_value = make_response(json_error=ValueError("bad json"))
        result = self.client.send({})
        self.assertEqual(result.kind, ErrorKind.API)

    def test_nonzero_top_level_code(self):
        self.post.return_value = make_response({"code": 1000, "message": "denied"})

        result = self.client.send({})

        self.assertEqual(result.kind, ErrorKind.API)
        self.assertEqual(result.message, "denied (code: 1000)")
        with self.assertRaises(ApiError) as ctx:
            result.unwrap()
        self.assertEqual(ctx.exception.code, 1000)

    def test_nonzero_code_without_message(self):
        self.post.return_value = make_response({"code": 500001})
        result = self.client.send({})
        self.assertEqual(result.message, "Unknown error (code: 500001)")

    def test_request_raises_mapped_exceptions(self):
        self.post.return_value = make_response(status_code=401)
        with self.assertRaises(AuthError):
            self.client.request({})

        self.post.side_effect = requests.exceptions.ConnectionError()
        with self.assertRaises(NetworkError):
            self.client.request({})

    def test_call_returns_section_data(self):
        self.post.return_value = make_response(
            {"code": 0, "req_0": {"code": 0, "data": {"value": 42}}}
        )

        data = self.client.call("mod", "meth", {"a": 1})

        self.assertEqual(data, {"value": 42})
        self.assertEqual(
            self.sent_body()["req_0"], {"module": "mod", "method": "meth", "param": {"a": 1}}
        )

    def test_call_rejects_section_error(self):
        self.post.return_value = make_response({"code": 0, "req_0": {"code": 2000}})

        with self.assertRaises(ApiError) as ctx:
            self.client.call("mod", "meth")
        self.assertEqual(ctx.exception.code, 2000)

    def test_update_timeout(self):
        self.client.update_timeout(12.5)
        self.post.return_value = make_response({"code": 0})
        self.client.send({})
        self.assertEqual(self.post.call_args.kwargs["timeout"], 12.5)


class TestDownload(unittest.TestCase):
    """Test case for streamed downloads."""

    def setUp(self):
        store = Mock()
        store.load.return_value = None
        self.client = ApiClient(AuthManager(store), download_timeout=60)

    @patch("qqm.client.requests.get")
    def test_download_writes_chunks(self, mock_get):
        import tempfile
        from pathlib import Path

        response = MagicMock()
        response.iter_content.return_value = [b"abc", b"", b"defg"]
        mock_get.return_value.__enter__.return_value = response

        with tempfile.TemporaryDirectory() as tmp:
            dest = Path(tmp) / "song.mp3"
            written = self.client.download("https://example.com/song.mp3", dest)

            self.assertEqual(written, 7)
            self.assertEqual(dest.read_bytes(), b"abcdefg")

        kwargs = mock_get.call_args.kwargs
        self.assertTrue(kwargs["stream"])
        self.assertEqual(kwargs["timeout"], 60)
        self.assertEqual(kwargs["headers"]["Referer"], "https://y.qq.com/")

    @patch("qqm.client.requests.get")
    def test_download_failure_removes_partial_file(self, mock_get):
        import tempfile
        from pathlib import Path

        def chunks(chunk_size):
            yield b"partial"
            raise requests.exceptions.ConnectionError("reset")

        response = MagicMock()
        response.iter_content.side_effect = chunks
        mock_get.return_value.__enter__.return_value = response

        with tempfile.TemporaryDirectory() as tmp:
            dest = Path(tmp) / "song.mp3"
            with self.assertRaises(NetworkError):
                self.client.download("https://example.com/song.mp3", dest)
            self.assertFalse(dest.exists())


if __name__ == "__main__":
    unittest.main()
