"""
Authorization flow orchestrator for linking a shop account to an install.

Flow:
1. start(install_id) mints a split state token and returns the
   authorization URL plus the signed cookie value
2. The browser returns to the callback with ``code`` and ``state``
3. complete_callback() verifies state against the cookie, exchanges the
   code and stores the sealed credential record
4. status() / disconnect() work on the store directly

SECURITY REQUIREMENTS:
- Tokens never leave this service except into the credential store
- Redirect URLs carry only install_id and a connected flag
- Upstream failures are reported generically (502)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from connector.auth.oauth_state import FIELD_SEPARATOR, mint_state, verify_state
from connector.credentials.records import CredentialRecord
from connector.credentials.redaction import redact_value
from connector.credentials.store import CredentialStore
from connector.integrations.tiktok.auth_client import (
    AuthorizationServerClient,
    TokenExchangeError,
)
from connector.platform.errors import ForbiddenError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

MISSING_COOKIE = "missing cookie"
INVALID_STATE = "invalid state"


@dataclass(frozen=True)
class StartResult:
    """Outcome of starting an authorization flow."""
    authorization_url: str
    # Value for the httpOnly state cookie
    state_cookie: str
    cookie_max_age_seconds: int


@dataclass(frozen=True)
class CallbackResult:
    """Outcome of a completed callback. Contains no secrets."""
    install_id: str
    redirect_url: str


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require_install_id(install_id: Optional[str]) -> str:
    if install_id is None or not install_id.strip():
        raise ValidationError("install_id is required")
    return install_id.strip()


def build_frontend_redirect(frontend_url: str, install_id: str) -> str:
    """
    Append install_id and connected=true to the frontend URL.

    Existing query parameters are preserved.
    """
    parts = urlsplit(frontend_url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in ("install_id", "connected")
    ]
    query.extend([("install_id", install_id), ("connected", "true")])
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)
    )


class ConnectService:
    """
    Orchestrates the shop-linking OAuth flow.

    Holds only configuration and collaborators; all per-flow data travels
    in the state cookie.
    """

    def __init__(
        self,
        store: CredentialStore,
        auth_client: AuthorizationServerClient,
        state_secret: str,
        state_ttl_ms: int,
        frontend_url: str,
    ):
        if not state_secret:
            raise ValueError("state_secret is required")

        self.store = store
        self.auth_client = auth_client
        self._state_secret = state_secret
        self.state_ttl_ms = state_ttl_ms
        self.frontend_url = frontend_url

    def start(self, install_id: Optional[str]) -> StartResult:
        """
        Begin an authorization flow for an install.

        Raises:
            ValidationError: If install_id is missing, blank or contains ':'
        """
        install_id = _require_install_id(install_id)
        if FIELD_SEPARATOR in install_id:
            raise ValidationError("install_id must not contain ':'")

        minted = mint_state(install_id, self._state_secret)
        authorization_url = self.auth_client.build_authorization_url(minted.nonce)

        logger.info("OAuth flow started", extra={"install_id": install_id})

        return StartResult(
            authorization_url=authorization_url,
            state_cookie=minted.cookie_payload,
            cookie_max_age_seconds=self.state_ttl_ms // 1000,
        )

    async def complete_callback(
        self,
        code: Optional[str],
        nonce: Optional[str],
        cookie: Optional[str],
    ) -> CallbackResult:
        """
        Finish an authorization flow.

        Args:
            code: Authorization code from the callback query
            nonce: ``state`` query parameter echoed by the authorization server
            cookie: Signed state cookie value

        Returns:
            CallbackResult with the verified install_id and frontend redirect

        Raises:
            ValidationError: If code or state is missing
            ForbiddenError: If the cookie is missing or the state does not verify
            UpstreamError: If the code exchange fails
        """
        if not code or not nonce:
            raise ValidationError("code and state are required")
        if not cookie:
            logger.warning("OAuth callback without state cookie")
            raise ForbiddenError(MISSING_COOKIE)

        verified = verify_state(nonce, cookie, self._state_secret, self.state_ttl_ms)
        if not verified.valid:
            logger.warning("OAuth callback with invalid state")
            raise ForbiddenError(INVALID_STATE)

        install_id = verified.install_id

        try:
            grant = await self.auth_client.exchange_code(code)
        except (TokenExchangeError, asyncio.TimeoutError) as e:
            logger.error(
                "Token exchange failed",
                extra={"install_id": install_id, "error": redact_value(str(e))},
            )
            raise UpstreamError() from e

        record = CredentialRecord(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            access_token_expires_at=_now_ms() + grant.expires_in_seconds * 1000,
            external_account_id=grant.external_account_id,
            display_name=grant.display_name,
        )
        # Blocking database write runs in the default executor
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.store.upsert, install_id, record)

        logger.info(
            "OAuth flow completed",
            extra={
                "install_id": install_id,
                "external_account_id": grant.external_account_id,
            }
        )

        return CallbackResult(
            install_id=install_id,
            redirect_url=build_frontend_redirect(self.frontend_url, install_id),
        )

    def disconnect(self, install_id: Optional[str]) -> bool:
        """
        Remove stored credentials for an install.

        Returns:
            True if a record was deleted
        """
        install_id = _require_install_id(install_id)
        deleted = self.store.delete(install_id)
        logger.info(
            "Install disconnected",
            extra={"install_id": install_id, "deleted": deleted},
        )
        return deleted

    def status(self, install_id: Optional[str]) -> bool:
        """Return whether credentials exist for an install. Never decrypts."""
        install_id = _require_install_id(install_id)
        return self.store.has_tokens(install_id)
