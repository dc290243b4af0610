"""
Keyed message authentication helpers.

HMAC-SHA256 signing and constant-time comparison used by the OAuth
state protocol.
"""

import hashlib
import hmac
from typing import Union

BytesOrStr = Union[bytes, str]


def _to_bytes(value: BytesOrStr) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def hmac_sha256_hex(message: BytesOrStr, secret: BytesOrStr) -> str:
    """
    Compute HMAC-SHA256 of message under secret.

    Returns:
        64-character lowercase hex digest
    """
    return hmac.new(_to_bytes(secret), _to_bytes(message), hashlib.sha256).hexdigest()


def constant_time_equal(a: BytesOrStr, b: BytesOrStr) -> bool:
    """
    Compare two values without leaking content through timing.

    Only a length mismatch returns early.
    """
    a_bytes = _to_bytes(a)
    b_bytes = _to_bytes(b)
    if len(a_bytes) != len(b_bytes):
        return False
    return hmac.compare_digest(a_bytes, b_bytes)
