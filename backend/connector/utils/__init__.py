"""
Utility modules for the shop connector.

This package contains the cryptographic primitives shared across the service.
"""

from connector.utils.encryption import (
    TokenCipher,
    EncryptionError,
    DecryptionError,
    InvalidKeyError,
    decode_hex_key,
    generate_key,
    generate_key_hex,
    seal,
    open_sealed,
)
from connector.utils.signing import hmac_sha256_hex, constant_time_equal

__all__ = [
    "TokenCipher",
    "EncryptionError",
    "DecryptionError",
    "InvalidKeyError",
    "decode_hex_key",
    "generate_key",
    "generate_key_hex",
    "seal",
    "open_sealed",
    "hmac_sha256_hex",
    "constant_time_equal",
]
