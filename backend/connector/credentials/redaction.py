"""
Credential redaction and audit logging utilities.

SECURITY REQUIREMENTS:
- Tokens NEVER appear in logs (access_token, refresh_token, auth codes)
- install_id is allowed in logs
- Every store mutation is logged as an audit event

Audit Events:
- credential.stored
- credential.deleted
- credential.decrypt_failed

Usage:
    from connector.credentials.redaction import CredentialAuditLogger, AuditEventType

    audit = CredentialAuditLogger()
    audit.log(AuditEventType.CREDENTIAL_STORED, install_id="install-abc")
"""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

REDACTED_VALUE = "[REDACTED]"
MASK = "****"


class AuditEventType(str, Enum):
    """Credential audit event types."""
    CREDENTIAL_STORED = "credential.stored"
    CREDENTIAL_DELETED = "credential.deleted"
    CREDENTIAL_DECRYPT_FAILED = "credential.decrypt_failed"


# Key names that indicate a secret value
SECRET_KEY_PATTERNS = [
    re.compile(r"(access[_-]?token)", re.IGNORECASE),
    re.compile(r"(refresh[_-]?token)", re.IGNORECASE),
    re.compile(r"(bearer[_-]?token)", re.IGNORECASE),
    re.compile(r"(auth[_-]?code)", re.IGNORECASE),
    re.compile(r"(app[_-]?secret)", re.IGNORECASE),
    re.compile(r"(client[_-]?secret)", re.IGNORECASE),
    re.compile(r"(state[_-]?secret)", re.IGNORECASE),
    re.compile(r"(encryption[_-]?key)", re.IGNORECASE),
    re.compile(r"(api[_-]?key)", re.IGNORECASE),
    re.compile(r"(password)", re.IGNORECASE),
    re.compile(r"(credentials?)$", re.IGNORECASE),
    re.compile(r"(cookie)", re.IGNORECASE),
]

# "name=value" / "name: value" where the name looks secret
SECRET_ASSIGNMENT_PATTERN = re.compile(
    r"((?:token|secret|key|password|credential|auth_code|code)[^\s'\"=:&]*\s*[=:]\s*['\"]?)([^\s'\"&]{8,})",
    re.IGNORECASE,
)

# Common secret value shapes, redacted wherever they appear
SECRET_VALUE_PATTERNS = [
    re.compile(r"(Bearer\s+[a-zA-Z0-9._~+/=-]+)"),
    re.compile(r"\b([a-fA-F0-9]{64,})\b"),  # hex keys, HMAC digests
]


def mask_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a secret, keeping a few characters at each end for correlation.

    Args:
        value: The secret to mask
        visible_chars: Characters kept at each end

    Returns:
        Masked string like "abcd****wxyz", or "****" for short values
    """
    if not value or len(value) <= visible_chars * 2:
        return MASK
    return value[:visible_chars] + MASK + value[-visible_chars:]


def is_secret_key(key: str) -> bool:
    """Check if a key name likely holds a secret."""
    return any(pattern.search(key) for pattern in SECRET_KEY_PATTERNS)


def redact_value(value: Any) -> Any:
    """
    Mask token-like substrings inside a string.

    Non-strings are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    result = SECRET_ASSIGNMENT_PATTERN.sub(
        lambda m: m.group(1) + mask_secret(m.group(2)), value
    )
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)
    return result


def redact_secrets(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact secrets from a data structure.

    Use this before logging any data that might contain credentials.

    Args:
        data: Dictionary, list, or other data structure

    Returns:
        Copy of data with secrets redacted
    """
    # Prevent infinite recursion
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and is_secret_key(key):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_secrets(value, _depth + 1)
        return result

    if isinstance(data, (list, tuple)):
        return [redact_secrets(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_value(data)

    return data


class CredentialAuditLogger:
    """
    Structured audit logger for credential operations.

    SECURITY:
    - Tokens are NEVER logged
    - metadata is redacted before it is emitted
    """

    def __init__(self, logger_name: str = "connector.credentials.audit"):
        self.logger = logging.getLogger(logger_name)

    def log(
        self,
        event_type: AuditEventType,
        install_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        level: int = logging.INFO,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: Type of audit event
            install_id: Install the credential belongs to
            metadata: Additional context (will be redacted)
            level: Log level
        """
        safe_metadata = redact_secrets(metadata) if metadata else {}

        audit_record = {
            "event_type": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "install_id": install_id,
            **safe_metadata,
        }

        self.logger.log(level, f"Credential audit: {event_type.value}", extra=audit_record)


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts secrets from log records.

    Usage:
        handler.addFilter(SecretRedactingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # Redact the message
        if isinstance(record.msg, str):
            record.msg = redact_value(record.msg)

        # Redact args
        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_secrets(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        # Redact extra fields
        for key in list(record.__dict__.keys()):
            if key in _LOG_RECORD_ATTRS:
                continue
            if is_secret_key(key):
                setattr(record, key, REDACTED_VALUE)
            elif isinstance(getattr(record, key), str):
                setattr(record, key, redact_value(getattr(record, key)))

        return True


# Standard LogRecord attributes, never treated as extras
_LOG_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure process logging with secret redaction.

    Call once at application startup.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    redacting_filter = SecretRedactingFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SecretRedactingFilter) for f in handler.filters):
            handler.addFilter(redacting_filter)

    logger.info("Logging configured with secret redaction filter")
