"""
Environment configuration for the shop connector.

All values are read once at startup by load_config(). Keys and secrets
are held on an immutable ConnectorConfig and injected into the store and
service at construction; nothing reads the environment afterwards.

Required:
    TIKTOK_APP_KEY, TIKTOK_APP_SECRET, TOKEN_ENCRYPTION_KEY (64 hex chars),
    STATE_SECRET, CALLBACK_URL, FRONTEND_URL

Usage:
    config = load_config()
    store = CredentialStore.from_url(config.database_url, config.encryption_key)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from connector.utils.encryption import InvalidKeyError, decode_hex_key

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./data/connector.db"
DEFAULT_STATE_TTL_MS = 600_000  # 10 minutes
DEFAULT_STATE_COOKIE_NAME = "tiktok_oauth_state"
DEFAULT_EXCHANGE_TIMEOUT_SECONDS = 10.0
DEFAULT_RATE_LIMIT_MAX = 60
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_PORT = 3456

REQUIRED_VARS = (
    "TIKTOK_APP_KEY",
    "TIKTOK_APP_SECRET",
    "TOKEN_ENCRYPTION_KEY",
    "STATE_SECRET",
    "CALLBACK_URL",
    "FRONTEND_URL",
)


class ConfigurationError(ValueError):
    """Configuration is missing or malformed."""
    pass


@dataclass(frozen=True)
class ConnectorConfig:
    """Immutable process configuration."""
    app_key: str
    app_secret: str = field(repr=False)
    encryption_key: bytes = field(repr=False)
    state_secret: str = field(repr=False)
    callback_url: str
    frontend_url: str
    database_url: str = DEFAULT_DATABASE_URL
    state_ttl_ms: int = DEFAULT_STATE_TTL_MS
    state_cookie_name: str = DEFAULT_STATE_COOKIE_NAME
    exchange_timeout_seconds: float = DEFAULT_EXCHANGE_TIMEOUT_SECONDS
    rate_limit_enabled: bool = True
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    rate_limit_window_seconds: int = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    redis_url: str = DEFAULT_REDIS_URL
    trusted_proxy_count: int = 0
    environment: str = "development"
    port: int = DEFAULT_PORT

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def normalize_database_url(url: str) -> str:
    """Rewrite the legacy postgres:// scheme that SQLAlchemy rejects."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def _database_url(database_url: Optional[str], sqlite_path: Optional[str]) -> str:
    if database_url:
        return normalize_database_url(database_url)
    if sqlite_path:
        return f"sqlite:///{sqlite_path}"
    return DEFAULT_DATABASE_URL


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str, minimum: int = 0) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if parsed < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}")
    return parsed


def _parse_float(name: str, value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive")
    return parsed


def load_config(environ: Optional[Mapping[str, str]] = None) -> ConnectorConfig:
    """
    Build the configuration from environment variables.

    Args:
        environ: Mapping to read instead of os.environ

    Returns:
        ConnectorConfig

    Raises:
        ConfigurationError: If a required variable is missing or a value is malformed
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARS if not env.get(name)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    try:
        encryption_key = decode_hex_key(env["TOKEN_ENCRYPTION_KEY"])
    except InvalidKeyError as e:
        raise ConfigurationError(f"TOKEN_ENCRYPTION_KEY is invalid: {e}") from None

    def optional(name: str) -> Optional[str]:
        value = env.get(name)
        return value if value else None

    config = ConnectorConfig(
        app_key=env["TIKTOK_APP_KEY"],
        app_secret=env["TIKTOK_APP_SECRET"],
        encryption_key=encryption_key,
        state_secret=env["STATE_SECRET"],
        callback_url=env["CALLBACK_URL"],
        frontend_url=env["FRONTEND_URL"],
        database_url=_database_url(optional("DATABASE_URL"), optional("SQLITE_PATH")),
        state_ttl_ms=_parse_int(
            "STATE_TTL_MS", optional("STATE_TTL_MS") or str(DEFAULT_STATE_TTL_MS)
        ),
        state_cookie_name=optional("STATE_COOKIE_NAME") or DEFAULT_STATE_COOKIE_NAME,
        exchange_timeout_seconds=_parse_float(
            "EXCHANGE_TIMEOUT_SECONDS",
            optional("EXCHANGE_TIMEOUT_SECONDS") or str(DEFAULT_EXCHANGE_TIMEOUT_SECONDS),
        ),
        rate_limit_enabled=_parse_bool(
            "RATE_LIMIT_ENABLED", optional("RATE_LIMIT_ENABLED") or "true"
        ),
        rate_limit_max=_parse_int(
            "RATE_LIMIT_MAX", optional("RATE_LIMIT_MAX") or str(DEFAULT_RATE_LIMIT_MAX), minimum=1
        ),
        rate_limit_window_seconds=_parse_int(
            "RATE_LIMIT_WINDOW_SECONDS",
            optional("RATE_LIMIT_WINDOW_SECONDS") or str(DEFAULT_RATE_LIMIT_WINDOW_SECONDS),
            minimum=1,
        ),
        redis_url=optional("REDIS_URL") or DEFAULT_REDIS_URL,
        trusted_proxy_count=_parse_int(
            "TRUSTED_PROXY_COUNT", optional("TRUSTED_PROXY_COUNT") or "0"
        ),
        environment=(optional("ENV") or "development").lower(),
        port=_parse_int("PORT", optional("PORT") or str(DEFAULT_PORT), minimum=1),
    )

    logger.info(
        "Configuration loaded",
        extra={
            "environment": config.environment,
            "database_backend": config.database_url.split(":", 1)[0],
            "rate_limit_enabled": config.rate_limit_enabled,
            "state_ttl_ms": config.state_ttl_ms,
        }
    )
    return config
