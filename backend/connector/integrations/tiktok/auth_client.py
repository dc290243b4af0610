"""
TikTok Shop authorization-server client.

Builds the seller authorization URL and exchanges the one-time auth code
for access/refresh tokens, and trades a refresh token for a new pair.

SECURITY REQUIREMENTS:
- app_secret and returned tokens are NEVER logged
- Upstream error bodies are not propagated to callers
- No retries: an auth code is single use

Usage:
    client = TikTokShopAuthClient(app_key="...", app_secret="...")
    url = client.build_authorization_url(state=nonce)
    grant = await client.exchange_code(code)
    grant = await client.refresh_access_token(grant.refresh_token)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from connector.credentials.redaction import mask_secret

logger = logging.getLogger(__name__)

TIKTOK_AUTHORIZE_URL = "https://services.tiktokshop.com/open/authorize"
TIKTOK_TOKEN_URL = "https://auth.tiktok-shops.com/api/v2/token/get"
TIKTOK_REFRESH_URL = "https://auth.tiktok-shops.com/api/v2/token/refresh"
DEFAULT_TIMEOUT_SECONDS = 10.0


class TokenExchangeError(Exception):
    """A token endpoint request failed or returned an unusable response."""
    pass


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by a successful exchange or refresh."""
    access_token: str
    refresh_token: str
    expires_in_seconds: int
    external_account_id: str
    display_name: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"TokenGrant(access_token={mask_secret(self.access_token)!r}, "
            f"refresh_token={mask_secret(self.refresh_token)!r}, "
            f"expires_in_seconds={self.expires_in_seconds}, "
            f"external_account_id={self.external_account_id!r}, "
            f"display_name={self.display_name!r})"
        )


class AuthorizationServerClient(ABC):
    """Outbound interface to an OAuth authorization server."""

    @abstractmethod
    def build_authorization_url(self, state: str) -> str:
        """Return the URL the browser is redirected to, carrying ``state``."""

    @abstractmethod
    async def exchange_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: On any failure, including timeouts
        """

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new token pair."""


class TikTokShopAuthClient(AuthorizationServerClient):
    """
    TikTok Shop OAuth client.

    SECURITY: app_secret is sent as a query parameter as required by the
    TikTok Shop token endpoint; request URLs are therefore never logged.
    """

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        redirect_uri: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize TikTok Shop client.

        Args:
            app_key: TikTok Shop app key (client id)
            app_secret: TikTok Shop app secret
            redirect_uri: Registered callback URL (configured on the TikTok app)
            timeout_seconds: Bound on the whole exchange request
            transport: Optional httpx transport, for tests
        """
        if not app_key or not app_secret:
            raise ValueError("app_key and app_secret are required")

        self.app_key = app_key
        self._app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def build_authorization_url(self, state: str) -> str:
        request = httpx.Request(
            "GET",
            TIKTOK_AUTHORIZE_URL,
            params={"app_key": self.app_key, "state": state},
        )
        return str(request.url)

    async def exchange_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for TikTok Shop tokens.

        Args:
            code: One-time auth code from the callback

        Returns:
            TokenGrant

        Raises:
            TokenExchangeError: If the request fails or the response is unusable
        """
        params = {
            "app_key": self.app_key,
            "app_secret": self._app_secret,
            "auth_code": code,
            "grant_type": "authorized_code",
        }
        return await self._request_grant(TIKTOK_TOKEN_URL, params, "token exchange")

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """
        Trade a refresh token for a new TikTok Shop token pair.

        Raises:
            TokenExchangeError: If the request fails or the response is unusable
        """
        params = {
            "app_key": self.app_key,
            "app_secret": self._app_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        return await self._request_grant(TIKTOK_REFRESH_URL, params, "token refresh")

    async def _request_grant(self, url: str, params: dict, action: str) -> TokenGrant:
        label = f"TikTok {action}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.warning(
                f"{label} timed out",
                extra={"timeout_seconds": self.timeout_seconds},
            )
            raise TokenExchangeError(f"{label} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(
                f"{label} transport error",
                extra={"error_type": type(e).__name__},
            )
            raise TokenExchangeError(f"{label} request failed") from e

        if not response.is_success:
            raise TokenExchangeError(f"{label} failed: HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise TokenExchangeError(f"{label} returned non-JSON body") from e

        if not isinstance(body, dict):
            raise TokenExchangeError(f"{label} returned unexpected body")

        if body.get("code") != 0:
            raise TokenExchangeError(
                f"{label} error: {body.get('code')} {body.get('message', '')}".rstrip()
            )

        grant = self._parse_grant(body.get("data"), label)
        logger.info(
            f"{label} succeeded",
            extra={
                "external_account_id": grant.external_account_id,
                "expires_in_seconds": grant.expires_in_seconds,
            }
        )
        return grant

    @staticmethod
    def _parse_grant(data: Any, label: str) -> TokenGrant:
        if not isinstance(data, dict):
            raise TokenExchangeError(f"{label} response missing data")

        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_in = data.get("access_token_expire_in")
        open_id = data.get("open_id")

        if not access_token or not refresh_token or not open_id:
            raise TokenExchangeError(f"{label} response missing fields")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise TokenExchangeError(f"{label} response missing expiry")

        seller_name = data.get("seller_name")
        return TokenGrant(
            access_token=str(access_token),
            refresh_token=str(refresh_token),
            expires_in_seconds=int(expires_in),
            external_account_id=str(open_id),
            display_name=str(seller_name) if seller_name else None,
        )
