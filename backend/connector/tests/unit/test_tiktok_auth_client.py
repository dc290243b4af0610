"""
Tests for the TikTok Shop authorization-server client.

Uses httpx.MockTransport so no network calls are made.
"""

import json
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from connector.integrations.tiktok.auth_client import (
    TIKTOK_REFRESH_URL,
    TIKTOK_TOKEN_URL,
    TikTokShopAuthClient,
    TokenExchangeError,
    TokenGrant,
)

APP_KEY = "test-app-key"
APP_SECRET = "test-app-secret-not-real"

SUCCESS_BODY = {
    "code": 0,
    "message": "success",
    "data": {
        "access_token": "test_access_token_not_real_aaaa",
        "access_token_expire_in": 604800,
        "refresh_token": "test_refresh_token_not_real_bbbb",
        "refresh_token_expire_in": 2592000,
        "open_id": "open-id-123",
        "seller_name": "Test Seller",
    },
}


def _client(handler) -> TikTokShopAuthClient:
    return TikTokShopAuthClient(
        app_key=APP_KEY,
        app_secret=APP_SECRET,
        timeout_seconds=1.0,
        transport=httpx.MockTransport(handler),
    )


class TestBuildAuthorizationUrl:

    def test_url_carries_app_key_and_state(self):
        client = TikTokShopAuthClient(app_key=APP_KEY, app_secret=APP_SECRET)
        url = client.build_authorization_url("nonce123")

        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://services.tiktokshop.com/open/authorize"
        assert parse_qs(parts.query) == {"app_key": [APP_KEY], "state": ["nonce123"]}

    def test_url_never_contains_secret(self):
        client = TikTokShopAuthClient(app_key=APP_KEY, app_secret=APP_SECRET)
        assert APP_SECRET not in client.build_authorization_url("nonce123")

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            TikTokShopAuthClient(app_key="", app_secret=APP_SECRET)


class TestExchangeCode:

    @pytest.mark.asyncio
    async def test_success(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=SUCCESS_BODY)

        grant = await _client(handler).exchange_code("auth-code-1")

        assert grant == TokenGrant(
            access_token="test_access_token_not_real_aaaa",
            refresh_token="test_refresh_token_not_real_bbbb",
            expires_in_seconds=604800,
            external_account_id="open-id-123",
            display_name="Test Seller",
        )

        request = seen[0]
        assert request.method == "GET"
        assert str(request.url).startswith(TIKTOK_TOKEN_URL)
        assert dict(request.url.params) == {
            "app_key": APP_KEY,
            "app_secret": APP_SECRET,
            "auth_code": "auth-code-1",
            "grant_type": "authorized_code",
        }

    @pytest.mark.asyncio
    async def test_missing_seller_name(self):
        body = json.loads(json.dumps(SUCCESS_BODY))
        del body["data"]["seller_name"]

        grant = await _client(lambda request: httpx.Response(200, json=body)).exchange_code("c")
        assert grant.display_name is None

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = _client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(TokenExchangeError, match="HTTP 500"):
            await client.exchange_code("c")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(TokenExchangeError, match="non-JSON"):
            await client.exchange_code("c")

    @pytest.mark.asyncio
    async def test_nonzero_code(self):
        client = _client(
            lambda request: httpx.Response(200, json={"code": 36004004, "message": "invalid auth code"})
        )
        with pytest.raises(TokenExchangeError, match="36004004"):
            await client.exchange_code("c")

    @pytest.mark.asyncio
    async def test_missing_fields(self):
        body = {"code": 0, "data": {"access_token": "only-access"}}
        client = _client(lambda request: httpx.Response(200, json=body))
        with pytest.raises(TokenExchangeError, match="missing"):
            await client.exchange_code("c")

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TokenExchangeError, match="timed out"):
            await _client(handler).exchange_code("c")

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TokenExchangeError):
            await _client(handler).exchange_code("c")

    @pytest.mark.asyncio
    async def test_no_retry(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(TokenExchangeError):
            await _client(handler).exchange_code("c")
        assert len(calls) == 1


class TestTokenGrantRepr:

    def test_repr_masks_tokens(self):
        grant = TokenGrant(
            access_token="test_access_token_not_real_aaaa",
            refresh_token="test_refresh_token_not_real_bbbb",
            expires_in_seconds=60,
            external_account_id="open-id-123",
        )
        assert "test_access_token_not_real_aaaa" not in repr(grant)
        assert "test_refresh_token_not_real_bbbb" not in repr(grant)


class TestRefreshAccessToken:

    @pytest.mark.asyncio
    async def test_success(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=SUCCESS_BODY)

        grant = await _client(handler).refresh_access_token("test_refresh_token_not_real_bbbb")

        assert grant.access_token == "test_access_token_not_real_aaaa"
        assert grant.expires_in_seconds == 604800

        request = seen[0]
        assert request.method == "GET"
        assert str(request.url).startswith(TIKTOK_REFRESH_URL)
        assert dict(request.url.params) == {
            "app_key": APP_KEY,
            "app_secret": APP_SECRET,
            "refresh_token": "test_refresh_token_not_real_bbbb",
            "grant_type": "refresh_token",
        }

    @pytest.mark.asyncio
    async def test_error_names_refresh(self):
        client = _client(
            lambda request: httpx.Response(200, json={"code": 105002, "message": "expired refresh token"})
        )
        with pytest.raises(TokenExchangeError, match="TikTok token refresh error: 105002"):
            await client.refresh_access_token("r")

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TokenExchangeError, match="TikTok token refresh timed out"):
            await _client(handler).refresh_access_token("r")
