"""
Service layer for the shop connector.
"""

from connector.services.connect_service import (
    CallbackResult,
    ConnectService,
    StartResult,
    build_frontend_redirect,
)

__all__ = [
    "CallbackResult",
    "ConnectService",
    "StartResult",
    "build_frontend_redirect",
]
