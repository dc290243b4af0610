"""
TikTok Shop integration.
"""

from connector.integrations.tiktok.auth_client import (
    AuthorizationServerClient,
    TikTokShopAuthClient,
    TokenExchangeError,
    TokenGrant,
    TIKTOK_AUTHORIZE_URL,
    TIKTOK_TOKEN_URL,
)

__all__ = [
    "AuthorizationServerClient",
    "TikTokShopAuthClient",
    "TokenExchangeError",
    "TokenGrant",
    "TIKTOK_AUTHORIZE_URL",
    "TIKTOK_TOKEN_URL",
]
