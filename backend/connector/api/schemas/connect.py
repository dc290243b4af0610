"""
Request and response schemas for the connect API.

SECURITY: no schema here has a token field. Status and disconnect
responses expose booleans only.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DisconnectRequest(BaseModel):
    """Body of POST /connect/tiktok/disconnect."""

    model_config = ConfigDict(populate_by_name=True)

    install_id: Optional[str] = Field(default=None, alias="installId")


class DisconnectResponse(BaseModel):
    ok: bool = True
    deleted: bool


class StatusResponse(BaseModel):
    connected: bool


class HealthResponse(BaseModel):
    status: str
    timestamp: str
