"""
Encrypted credential storage and log redaction.
"""

from connector.credentials.records import CredentialRecord, RecordFormatError
from connector.credentials.redaction import (
    AuditEventType,
    CredentialAuditLogger,
    SecretRedactingFilter,
    configure_logging,
    mask_secret,
    redact_secrets,
    redact_value,
)
from connector.credentials.store import (
    CredentialStore,
    CredentialStoreError,
    create_store_engine,
)

__all__ = [
    "CredentialRecord",
    "RecordFormatError",
    "AuditEventType",
    "CredentialAuditLogger",
    "SecretRedactingFilter",
    "configure_logging",
    "mask_secret",
    "redact_secrets",
    "redact_value",
    "CredentialStore",
    "CredentialStoreError",
    "create_store_engine",
]
