"""
Plaintext credential record and its serialized form.

SECURITY:
- A CredentialRecord only exists in process memory
- repr() masks the token fields so accidental logging is safe
- The JSON form is sealed before it reaches storage
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from connector.credentials.redaction import mask_secret


class RecordFormatError(ValueError):
    """Serialized record is not a valid credential object."""
    pass


# Serialized key names, kept stable so existing rows stay readable
_ACCESS_TOKEN = "accessToken"
_REFRESH_TOKEN = "refreshToken"
_EXPIRES_AT = "accessTokenExpiresAt"
_ACCOUNT_ID = "openId"
_DISPLAY_NAME = "sellerName"


@dataclass(frozen=True)
class CredentialRecord:
    """Decrypted bearer tokens plus metadata for one install."""
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    access_token_expires_at: int
    external_account_id: str
    display_name: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"CredentialRecord(access_token={mask_secret(self.access_token)!r}, "
            f"refresh_token={mask_secret(self.refresh_token)!r}, "
            f"access_token_expires_at={self.access_token_expires_at}, "
            f"external_account_id={self.external_account_id!r}, "
            f"display_name={self.display_name!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            _ACCESS_TOKEN: self.access_token,
            _REFRESH_TOKEN: self.refresh_token,
            _EXPIRES_AT: self.access_token_expires_at,
            _ACCOUNT_ID: self.external_account_id,
        }
        if self.display_name is not None:
            data[_DISPLAY_NAME] = self.display_name
        return data

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialRecord":
        """
        Build a record from its serialized mapping.

        Raises:
            RecordFormatError: If a required field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise RecordFormatError("Credential record must be an object")

        try:
            access_token = data[_ACCESS_TOKEN]
            refresh_token = data[_REFRESH_TOKEN]
            expires_at = data[_EXPIRES_AT]
            account_id = data[_ACCOUNT_ID]
        except KeyError as e:
            raise RecordFormatError(f"Missing field: {e.args[0]}") from e

        if not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise RecordFormatError("Token fields must be strings")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise RecordFormatError("accessTokenExpiresAt must be a number")
        if not isinstance(account_id, str):
            raise RecordFormatError("openId must be a string")

        display_name = data.get(_DISPLAY_NAME)
        if display_name is not None and not isinstance(display_name, str):
            raise RecordFormatError("sellerName must be a string")

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=int(expires_at),
            external_account_id=account_id,
            display_name=display_name,
        )

    @classmethod
    def from_json(cls, raw: bytes) -> "CredentialRecord":
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RecordFormatError("Credential record is not valid JSON") from e
        return cls.from_dict(data)
