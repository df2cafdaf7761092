#!/usr/bin/env python3

"""Authentication artifacts required by every call to the music API.

Two values are derived locally and must match what the web player computes:

* the *session token* (``g_tk``), a 31-bit rolling hash of the ``qm_keyst``
  cookie placed in the request header, and
* the *signature* appended as ``?sign=`` to the POST URL, a keyed transform
  of the SHA-1 digest of the exact JSON body being sent.

Both are pure functions of their input.
"""

from typing import Any, Mapping
import base64
import hashlib
import json
import re


_HASH_SEED = 5381
_UINT32_MASK = 0xFFFFFFFF
_INT31_MASK = 0x7FFFFFFF

# Hex digit positions picked from the uppercase digest. Order matters.
_HEAD_POSITIONS = (23, 14, 6, 36, 16, 7, 19)
_TAIL_POSITIONS = (16, 1, 32, 12, 19, 27, 8, 5)
_XOR_KEY = (
    89, 39, 179, 150, 218, 82, 58, 252, 177, 52,
    186, 123, 120, 64, 242, 133, 143, 161, 121, 179,
)
_SIGN_PREFIX = "zzc"
_BASE64_STRIP = re.compile(r"[/+=]")


def _utf16_code_units(text: str):
    """Yield UTF-16 code units, so astral characters count as two surrogates."""
    encoded = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        yield encoded[i] | (encoded[i + 1] << 8)


def session_token(session_key: str) -> int:
    """Return the ``g_tk`` value for a session key.

    ``acc = acc * 33 + code`` over the key's UTF-16 code units, seeded at
    5381, wrapped to 32 bits and finally masked to 31 bits. An empty key
    yields 5381.
    """
    acc = _HASH_SEED
    for code in _utf16_code_units(session_key or ""):
        acc = (acc * 33 + code) & _UINT32_MASK
    return acc & _INT31_MASK


def canonical_json(body: Mapping[str, Any]) -> str:
    """Serialize ``body`` exactly as it will be sent on the wire.

    Compact separators, insertion-ordered keys and raw non-ASCII characters.
    The same string must be used for hashing and as the request payload.
    """
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def sign_payload(payload: str) -> str:
    """Compute the request signature for an already serialized body."""
    digest = hashlib.sha1(payload.encode("utf-8")).hexdigest().upper()

    head = "".join(digest[i] for i in _HEAD_POSITIONS)
    tail = "".join(digest[i] for i in _TAIL_POSITIONS)

    mixed = bytes(
        key ^ int(digest[i * 2:i * 2 + 2], 16) for i, key in enumerate(_XOR_KEY)
    )
    middle = _BASE64_STRIP.sub("", base64.b64encode(mixed).decode("ascii"))

    return (_SIGN_PREFIX + head + middle + tail).lower()


def sign(body: Mapping[str, Any]) -> str:
    """Compute the request signature for a body (header block plus calls)."""
    return sign_payload(canonical_json(body))
