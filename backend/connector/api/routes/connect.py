"""
TikTok Shop connect routes.

Endpoints:
- GET  /connect/tiktok/start       -> 302 to TikTok, sets the state cookie
- GET  /connect/tiktok/callback    -> verifies state, stores tokens, 302 to frontend
- POST /connect/tiktok/disconnect  -> deletes stored tokens
- GET  /connect/tiktok/status      -> {"connected": bool}

SECURITY:
- The state cookie is httpOnly, SameSite=Lax and Secure in production
- The cookie value is percent-encoded; install ids are opaque and may hold
  characters a Set-Cookie header cannot carry
- Tokens never appear in any response body or redirect URL
- All four routes are rate limited per client IP
"""

import logging
from typing import Optional
from urllib.parse import quote, unquote

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from connector.api.schemas.connect import (
    DisconnectRequest,
    DisconnectResponse,
    StatusResponse,
)
from connector.config import ConnectorConfig
from connector.middleware.rate_limit import rate_limit_dependency
from connector.services.connect_service import ConnectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connect/tiktok", tags=["connect"])


def get_connect_service(request: Request) -> ConnectService:
    return request.app.state.connect_service


def get_config(request: Request) -> ConnectorConfig:
    return request.app.state.config


@router.get("/start", status_code=status.HTTP_302_FOUND)
def start(
    install_id: Optional[str] = Query(default=None),
    service: ConnectService = Depends(get_connect_service),
    config: ConnectorConfig = Depends(get_config),
    _rate_limit=Depends(rate_limit_dependency("connect_start")),
):
    """Begin the TikTok Shop authorization flow for an install."""
    result = service.start(install_id)

    response = RedirectResponse(result.authorization_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=config.state_cookie_name,
        value=quote(result.state_cookie, safe=""),
        max_age=result.cookie_max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )
    return response


@router.get("/callback", status_code=status.HTTP_302_FOUND)
async def callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    service: ConnectService = Depends(get_connect_service),
    config: ConnectorConfig = Depends(get_config),
    _rate_limit=Depends(rate_limit_dependency("connect_callback")),
):
    """
    OAuth callback from TikTok Shop.

    Verifies the state nonce against the signed cookie, exchanges the
    code and redirects to the frontend with ``connected=true``.
    """
    cookie = request.cookies.get(config.state_cookie_name)
    if cookie is not None:
        cookie = unquote(cookie)
    result = await service.complete_callback(code=code, nonce=state, cookie=cookie)

    response = RedirectResponse(result.redirect_url, status_code=status.HTTP_302_FOUND)
    # Single use: the cookie is dropped once the flow completes
    response.delete_cookie(
        key=config.state_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )
    return response


@router.post("/disconnect", response_model=DisconnectResponse)
def disconnect(
    body: Optional[DisconnectRequest] = Body(default=None),
    service: ConnectService = Depends(get_connect_service),
    _rate_limit=Depends(rate_limit_dependency("connect_disconnect")),
):
    """Delete stored credentials for an install."""
    install_id = body.install_id if body is not None else None
    deleted = service.disconnect(install_id)
    return DisconnectResponse(ok=True, deleted=deleted)


@router.get("/status", response_model=StatusResponse)
def connection_status(
    install_id: Optional[str] = Query(default=None),
    service: ConnectService = Depends(get_connect_service),
    _rate_limit=Depends(rate_limit_dependency("connect_status")),
):
    """Report whether an install is connected. Exposes a boolean only."""
    return StatusResponse(connected=service.status(install_id))
