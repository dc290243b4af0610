from connector.api.schemas.connect import (
    DisconnectRequest,
    DisconnectResponse,
    HealthResponse,
    StatusResponse,
)

__all__ = [
    "DisconnectRequest",
    "DisconnectResponse",
    "HealthResponse",
    "StatusResponse",
]
