"""
SQLAlchemy models for the shop connector.
"""

from connector.models.base import TimestampMixin
from connector.models.install_token import InstallToken

__all__ = [
    "TimestampMixin",
    "InstallToken",
]
