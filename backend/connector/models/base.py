"""
Shared model mixins.
"""

from sqlalchemy import Column, DateTime, func


class TimestampMixin:
    """Adds created_at / updated_at columns maintained by the database."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Row creation time"
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last replacement time"
    )
