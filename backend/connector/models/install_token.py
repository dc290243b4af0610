"""
InstallToken model - encrypted credential row per install.

SECURITY REQUIREMENTS:
- encrypted_data holds a sealed AES-256-GCM blob, never plaintext
- One row per install_id; writes replace the whole blob
- Rows are hard-deleted on disconnect
"""

from sqlalchemy import Column, String, Text

from connector.db_base import Base
from connector.models.base import TimestampMixin


class InstallToken(Base, TimestampMixin):
    """
    Sealed credential record for one install.

    SECURITY:
    - encrypted_data is the only place token material is persisted
    - install_id is safe to log
    """

    __tablename__ = "install_tokens"

    install_id = Column(
        String(255),
        primary_key=True,
        comment="Caller-supplied install identity"
    )

    # Sealed blob "nonce:ciphertext:tag" - NEVER log
    encrypted_data = Column(
        Text,
        nullable=False,
        comment="AES-256-GCM sealed credential record"
    )

    def __repr__(self) -> str:
        return f"<InstallToken(install_id={self.install_id})>"
