"""
FastAPI application factory for the shop connector.

Usage:
    app = create_app_from_env()        # production, reads the environment

    app = create_app(config, store)    # tests, injected collaborators
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from connector.api.routes import connect, health
from connector.config import ConnectorConfig, load_config
from connector.credentials.redaction import configure_logging
from connector.credentials.store import CredentialStore
from connector.integrations.tiktok.auth_client import (
    AuthorizationServerClient,
    TikTokShopAuthClient,
)
from connector.middleware.rate_limit import RateLimiter
from connector.platform.errors import ErrorHandlerMiddleware, register_error_handlers
from connector.services.connect_service import ConnectService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    limiter: Optional[RateLimiter] = app.state.rate_limiter
    if limiter is not None:
        limiter.close()
    if app.state.owns_store:
        app.state.connect_service.store.close()


def create_app(
    config: ConnectorConfig,
    store: CredentialStore,
    auth_client: Optional[AuthorizationServerClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the ASGI app around an existing store.

    Args:
        config: Process configuration
        store: Credential store (closed by the caller unless owns_store is set)
        auth_client: Authorization-server client, TikTok Shop by default
        rate_limiter: Limiter override; built from config when enabled and not given

    Returns:
        FastAPI application
    """
    if auth_client is None:
        auth_client = TikTokShopAuthClient(
            app_key=config.app_key,
            app_secret=config.app_secret,
            redirect_uri=config.callback_url,
            timeout_seconds=config.exchange_timeout_seconds,
        )

    if rate_limiter is None and config.rate_limit_enabled:
        rate_limiter = RateLimiter(
            redis_url=config.redis_url,
            default_limit=config.rate_limit_max,
            window_seconds=config.rate_limit_window_seconds,
        )

    app = FastAPI(title="Shop Connector", lifespan=_lifespan)

    app.state.config = config
    app.state.connect_service = ConnectService(
        store=store,
        auth_client=auth_client,
        state_secret=config.state_secret,
        state_ttl_ms=config.state_ttl_ms,
        frontend_url=config.frontend_url,
    )
    app.state.rate_limiter = rate_limiter
    app.state.owns_store = False

    register_error_handlers(app)
    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(health.router)
    app.include_router(connect.router)

    return app


def create_app_from_env() -> FastAPI:
    """Load configuration, open the store and build the app. The app owns the store."""
    configure_logging()
    config = load_config()
    store = CredentialStore.from_url(config.database_url, config.encryption_key)

    app = create_app(config, store)
    app.state.owns_store = True

    logger.info(
        "Shop connector ready",
        extra={"environment": config.environment, "port": config.port},
    )
    return app
