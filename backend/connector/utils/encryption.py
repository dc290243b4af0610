"""
Encryption utilities for credential storage at rest.

Implements AES-256-GCM sealing of opaque payloads.

SECURITY:
- Uses AES-256-GCM for authenticated encryption
- Each seal uses a unique random 96-bit nonce
- Key must be exactly 32 bytes (256 bits), supplied as 64 hex characters
- Every open failure raises the same DecryptionError message so callers
  cannot tell a bad format from a bad tag or a wrong key

Sealed blob format (hex, colon separated):
    <nonce>:<ciphertext>:<tag>

Usage:
    from connector.utils.encryption import TokenCipher, decode_hex_key

    cipher = TokenCipher(decode_hex_key(os.environ["TOKEN_ENCRYPTION_KEY"]))
    sealed = cipher.seal(b'{"accessToken": "..."}')
    plaintext = cipher.open(sealed)
"""

import binascii
import logging
import secrets
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)


# AES-GCM constants
NONCE_SIZE = 12  # 96 bits, recommended for AES-GCM
TAG_SIZE = 16    # 128 bits, standard for AES-GCM
KEY_SIZE = 32    # 256 bits for AES-256

BLOB_SEPARATOR = ":"

# Single message for every open failure (format, tag, key)
DECRYPTION_FAILED = "Decryption failed"


class EncryptionError(Exception):
    """Raised when encryption fails."""
    pass


class DecryptionError(Exception):
    """Raised when a sealed blob cannot be opened."""

    def __init__(self, message: str = DECRYPTION_FAILED):
        super().__init__(message)


class InvalidKeyError(ValueError):
    """Raised when an encryption key is invalid."""
    pass


def generate_key() -> bytes:
    """Generate a new random 256-bit encryption key."""
    return secrets.token_bytes(KEY_SIZE)


def generate_key_hex() -> str:
    """Generate a new random encryption key as 64 hex characters."""
    return generate_key().hex()


def decode_hex_key(key_hex: str) -> bytes:
    """
    Decode a hex-encoded 32-byte key.

    Args:
        key_hex: 64-character hex string

    Returns:
        32-byte key

    Raises:
        InvalidKeyError: If the string is not 64 hex characters
    """
    if not key_hex or len(key_hex) != KEY_SIZE * 2:
        raise InvalidKeyError(
            f"Encryption key must be a {KEY_SIZE * 2}-character hex string ({KEY_SIZE} bytes)"
        )
    try:
        return bytes.fromhex(key_hex)
    except ValueError:
        raise InvalidKeyError(
            f"Encryption key must be a {KEY_SIZE * 2}-character hex string ({KEY_SIZE} bytes)"
        ) from None


def _coerce_key(key: Union[bytes, str]) -> bytes:
    if isinstance(key, str):
        return decode_hex_key(key)
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(
            f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}"
        )
    return bytes(key)


class TokenCipher:
    """
    AES-256-GCM cipher bound to a single key.

    Stateless apart from the key, safe to share across threads.

    SECURITY:
    - Never reuse nonces with the same key (seal always draws a fresh one)
    - Never log the key or plaintext
    """

    def __init__(self, key: Union[bytes, str]):
        """
        Initialize cipher with encryption key.

        Args:
            key: 32-byte key, or the same key as 64 hex characters

        Raises:
            InvalidKeyError: If key is missing or wrong size
        """
        if not key:
            raise InvalidKeyError("Encryption key is required")
        self._aesgcm = AESGCM(_coerce_key(key))

    @staticmethod
    def generate_nonce() -> bytes:
        """Generate a new random 12-byte nonce."""
        return secrets.token_bytes(NONCE_SIZE)

    def seal(self, plaintext: bytes) -> str:
        """
        Encrypt plaintext and encode it as a sealed blob.

        Args:
            plaintext: Bytes to encrypt

        Returns:
            "<nonce hex>:<ciphertext hex>:<tag hex>"

        Raises:
            EncryptionError: If encryption fails
        """
        nonce = self.generate_nonce()
        try:
            # AESGCM.encrypt returns ciphertext + tag concatenated
            ciphertext_with_tag = self._aesgcm.encrypt(nonce, plaintext, None)
        except Exception as e:
            logger.error(
                "Encryption failed",
                extra={"operation": "seal", "error_type": type(e).__name__},
            )
            raise EncryptionError("Failed to encrypt data") from e

        ciphertext = ciphertext_with_tag[:-TAG_SIZE]
        auth_tag = ciphertext_with_tag[-TAG_SIZE:]

        return BLOB_SEPARATOR.join((nonce.hex(), ciphertext.hex(), auth_tag.hex()))

    def open(self, sealed: str) -> bytes:
        """
        Decrypt a sealed blob.

        Args:
            sealed: Blob produced by seal()

        Returns:
            Decrypted plaintext bytes

        Raises:
            DecryptionError: On any format, length, or authentication failure
        """
        parts = sealed.split(BLOB_SEPARATOR) if isinstance(sealed, str) else []
        if len(parts) != 3:
            logger.debug("Decryption failed: malformed blob", extra={"operation": "open"})
            raise DecryptionError()

        try:
            nonce, ciphertext, auth_tag = (binascii.unhexlify(part) for part in parts)
        except (binascii.Error, ValueError):
            logger.debug("Decryption failed: invalid hex", extra={"operation": "open"})
            raise DecryptionError() from None

        if len(nonce) != NONCE_SIZE or len(auth_tag) != TAG_SIZE:
            logger.debug("Decryption failed: bad component length", extra={"operation": "open"})
            raise DecryptionError()

        try:
            return self._aesgcm.decrypt(nonce, ciphertext + auth_tag, None)
        except InvalidTag:
            logger.debug("Decryption failed: authentication tag mismatch", extra={"operation": "open"})
            raise DecryptionError() from None


def seal(plaintext: bytes, key: Union[bytes, str]) -> str:
    """Seal plaintext under key. See TokenCipher.seal."""
    return TokenCipher(key).seal(plaintext)


def open_sealed(sealed: str, key: Union[bytes, str]) -> bytes:
    """Open a sealed blob under key. See TokenCipher.open."""
    return TokenCipher(key).open(sealed)
