"""
HMAC-signed OAuth state for CSRF protection.

The state is split in two halves:
- URL ``state`` parameter: a random nonce only, safe to pass through the
  authorization server's redirect (logs, referrers, browser history)
- httpOnly cookie: "install_id:timestamp_ms:nonce:hmac"

The callback verifies the HMAC, the nonce match and the TTL. No server-side
session table is kept; everything needed for verification travels in the
cookie, which the authorization server never sees.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Optional

from connector.utils.signing import constant_time_equal, hmac_sha256_hex

NONCE_BYTES = 16
FIELD_SEPARATOR = ":"


@dataclass(frozen=True)
class MintedState:
    """A freshly minted state token."""
    # Passed to the authorization server as the ``state`` parameter
    nonce: str
    # Stored only in the httpOnly cookie
    cookie_payload: str


@dataclass(frozen=True)
class VerifiedState:
    """Outcome of verifying a callback's state."""
    valid: bool
    install_id: Optional[str] = None


_INVALID = VerifiedState(valid=False, install_id=None)


def _now_ms() -> int:
    return int(time.time() * 1000)


def mint_state(install_id: str, secret: str, now_ms: Optional[int] = None) -> MintedState:
    """
    Generate a new OAuth state (nonce + signed cookie payload).

    Args:
        install_id: Install the flow is started for
        secret: State signing secret
        now_ms: Override for the current epoch milliseconds

    Returns:
        MintedState with the public nonce and the private cookie payload
    """
    nonce = secrets.token_hex(NONCE_BYTES)
    timestamp = _now_ms() if now_ms is None else now_ms
    payload = FIELD_SEPARATOR.join((install_id, str(timestamp), nonce))
    tag = hmac_sha256_hex(payload, secret)
    return MintedState(nonce=nonce, cookie_payload=f"{payload}{FIELD_SEPARATOR}{tag}")


def verify_state(
    presented_nonce: Optional[str],
    cookie_payload: Optional[str],
    secret: str,
    ttl_ms: int,
    now_ms: Optional[int] = None,
) -> VerifiedState:
    """
    Verify OAuth state from a callback.

    Fails closed: every rejection returns VerifiedState(valid=False, install_id=None).

    Args:
        presented_nonce: The ``state`` query parameter echoed by the authorization server
        cookie_payload: The signed cookie value
        secret: State signing secret
        ttl_ms: Maximum age of the state in milliseconds (exclusive)
        now_ms: Override for the current epoch milliseconds

    Returns:
        VerifiedState carrying the embedded install_id on success
    """
    if not presented_nonce or not cookie_payload:
        return _INVALID

    payload, sep, tag = cookie_payload.rpartition(FIELD_SEPARATOR)
    if not sep:
        return _INVALID

    if not constant_time_equal(tag, hmac_sha256_hex(payload, secret)):
        return _INVALID

    fields = payload.split(FIELD_SEPARATOR)
    if len(fields) != 3:
        return _INVALID

    install_id, timestamp_str, embedded_nonce = fields

    # Defeats pairing an attacker's cookie with a victim's echoed nonce
    if embedded_nonce != presented_nonce:
        return _INVALID

    if not (timestamp_str.isascii() and timestamp_str.isdigit()):
        return _INVALID
    timestamp = int(timestamp_str)

    now = _now_ms() if now_ms is None else now_ms
    if now - timestamp >= ttl_ms:
        return _INVALID

    return VerifiedState(valid=True, install_id=install_id)
