"""
Tests for the split OAuth state token (public nonce + signed cookie).

CRITICAL: verify_state must fail closed on every tampering path.
"""

import pytest

from connector.auth.oauth_state import (
    NONCE_BYTES,
    MintedState,
    VerifiedState,
    mint_state,
    verify_state,
)
from connector.utils.signing import hmac_sha256_hex

SECRET = "test-state-secret-not-real"
TTL_MS = 600_000
NOW_MS = 1_700_000_000_000


@pytest.fixture
def minted() -> MintedState:
    return mint_state("install-abc", SECRET, now_ms=NOW_MS)


def _sign(payload: str, secret: str = SECRET) -> str:
    return f"{payload}:{hmac_sha256_hex(payload, secret)}"


class TestMintState:

    def test_nonce_is_32_hex_chars(self, minted: MintedState):
        assert len(minted.nonce) == NONCE_BYTES * 2
        int(minted.nonce, 16)

    def test_cookie_layout(self, minted: MintedState):
        install_id, timestamp, nonce, tag = minted.cookie_payload.split(":")
        assert install_id == "install-abc"
        assert timestamp == str(NOW_MS)
        assert nonce == minted.nonce
        assert tag == hmac_sha256_hex(f"install-abc:{NOW_MS}:{minted.nonce}", SECRET)

    def test_nonce_carries_no_install_id(self, minted: MintedState):
        assert "install-abc" not in minted.nonce

    def test_nonces_are_unique(self):
        nonces = {mint_state("install-abc", SECRET).nonce for _ in range(50)}
        assert len(nonces) == 50


class TestVerifyState:

    def test_round_trip(self, minted: MintedState):
        result = verify_state(minted.nonce, minted.cookie_payload, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result == VerifiedState(valid=True, install_id="install-abc")

    def test_round_trip_wall_clock(self):
        minted = mint_state("install-xyz", SECRET)
        result = verify_state(minted.nonce, minted.cookie_payload, SECRET, TTL_MS)
        assert result.valid is True
        assert result.install_id == "install-xyz"

    def test_wrong_nonce(self, minted: MintedState):
        other = mint_state("install-abc", SECRET, now_ms=NOW_MS)
        result = verify_state(other.nonce, minted.cookie_payload, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is False
        assert result.install_id is None

    def test_wrong_secret(self, minted: MintedState):
        result = verify_state(
            minted.nonce, minted.cookie_payload, "another-secret", TTL_MS, now_ms=NOW_MS
        )
        assert result.valid is False

    def test_zero_ttl_always_expired(self, minted: MintedState):
        result = verify_state(minted.nonce, minted.cookie_payload, SECRET, 0, now_ms=NOW_MS)
        assert result.valid is False

    def test_just_inside_ttl(self, minted: MintedState):
        result = verify_state(
            minted.nonce, minted.cookie_payload, SECRET, TTL_MS, now_ms=NOW_MS + TTL_MS - 1
        )
        assert result.valid is True

    def test_exact_ttl_boundary_is_expired(self, minted: MintedState):
        result = verify_state(
            minted.nonce, minted.cookie_payload, SECRET, TTL_MS, now_ms=NOW_MS + TTL_MS
        )
        assert result.valid is False

    def test_tampered_tag(self, minted: MintedState):
        tampered = minted.cookie_payload[:-4] + (
            "ffff" if not minted.cookie_payload.endswith("ffff") else "0000"
        )
        result = verify_state(minted.nonce, tampered, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is False

    def test_swapped_install_id(self, minted: MintedState):
        _, rest = minted.cookie_payload.split(":", 1)
        forged = f"install-xyz:{rest}"
        result = verify_state(minted.nonce, forged, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is False

    @pytest.mark.parametrize(
        "nonce,cookie",
        [
            ("", "install-abc:1:n:t"),
            ("n", ""),
            (None, "install-abc:1:n:t"),
            ("n", None),
        ],
    )
    def test_empty_inputs(self, nonce, cookie):
        result = verify_state(nonce, cookie, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result == VerifiedState(valid=False, install_id=None)

    def test_cookie_without_separator(self):
        result = verify_state("n", "no-separator-here", SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is False

    def test_correctly_signed_but_wrong_field_count(self):
        cookie = _sign(f"install:abc:{NOW_MS}:nonce")
        result = verify_state("nonce", cookie, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is False

    @pytest.mark.parametrize("timestamp", ["abc", "-5", "1.5", ""])
    def test_correctly_signed_but_bad_timestamp(self, timestamp):
        cookie = _sign(f"install-abc:{timestamp}:nonce")
        result = verify_state("nonce", cookie, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is False

    def test_future_timestamp_is_accepted(self):
        cookie = _sign(f"install-abc:{NOW_MS + 1000}:nonce")
        result = verify_state("nonce", cookie, SECRET, TTL_MS, now_ms=NOW_MS)
        assert result.valid is True
