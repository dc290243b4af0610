"""
Encrypted credential store keyed by install identity.

SECURITY REQUIREMENTS:
- Records are sealed with AES-256-GCM before they reach the database
- No plaintext tokens outside process memory
- Undecryptable rows read as "not found"; the failure is audited
- Writes are a single upsert of a fully built blob, never partial

Usage:
    store = CredentialStore.from_url("sqlite:///./data/connector.db", key_bytes)

    store.upsert("install-abc", record)
    record = store.get("install-abc")
    store.has_tokens("install-abc")  # existence only, never decrypts
    store.delete("install-abc")

    store.close()
"""

import logging
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from connector.credentials.records import CredentialRecord, RecordFormatError
from connector.credentials.redaction import AuditEventType, CredentialAuditLogger
from connector.db_base import Base
from connector.models.install_token import InstallToken
from connector.utils.encryption import DecryptionError, TokenCipher

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """Base exception for credential store errors."""
    pass


_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def create_store_engine(database_url: str) -> Engine:
    """
    Create an engine for the credential store.

    SQLite files get their parent directory created. In-memory SQLite
    uses a single shared connection so every session sees the same data.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    database = url.database
    if not database or database == ":memory:":
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args={"check_same_thread": False})


class CredentialStore:
    """
    Persistent mapping install_id -> sealed CredentialRecord.

    The store owns its engine: it is acquired at construction and
    released by close(). Each operation runs in its own short transaction.
    """

    def __init__(self, engine: Engine, encryption_key: Union[bytes, str]):
        """
        Initialize the credential store.

        Args:
            engine: SQLAlchemy engine (SQLite or PostgreSQL)
            encryption_key: 32-byte key, or 64 hex characters

        Raises:
            InvalidKeyError: If the key is not 256 bits
        """
        self._cipher = TokenCipher(encryption_key)
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        self.audit = CredentialAuditLogger()

        Base.metadata.create_all(engine, tables=[InstallToken.__table__])

    @classmethod
    def from_url(
        cls, database_url: str, encryption_key: Union[bytes, str]
    ) -> "CredentialStore":
        return cls(create_store_engine(database_url), encryption_key)

    @property
    def engine(self) -> Engine:
        return self._engine

    def get(self, install_id: str) -> Optional[CredentialRecord]:
        """
        Load and decrypt the record for an install.

        Returns:
            The record, or None if absent or undecryptable
        """
        with self._session_factory() as session:
            encrypted_data = session.execute(
                select(InstallToken.encrypted_data).where(
                    InstallToken.install_id == install_id
                )
            ).scalar_one_or_none()

        if encrypted_data is None:
            return None

        try:
            return CredentialRecord.from_json(self._cipher.open(encrypted_data))
        except (DecryptionError, RecordFormatError) as e:
            self.audit.log(
                AuditEventType.CREDENTIAL_DECRYPT_FAILED,
                install_id=install_id,
                metadata={"error_type": type(e).__name__},
                level=logging.WARNING,
            )
            return None

    def upsert(self, install_id: str, record: CredentialRecord) -> None:
        """
        Insert or fully replace the record for an install.

        Raises:
            CredentialStoreError: If the database dialect has no upsert support
        """
        dialect = self._engine.dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise CredentialStoreError(f"Unsupported database dialect: {dialect}")

        # Sealed fully in memory before the single write
        encrypted_data = self._cipher.seal(record.to_json())

        stmt = insert(InstallToken.__table__).values(
            install_id=install_id,
            encrypted_data=encrypted_data,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[InstallToken.__table__.c.install_id],
            set_={
                "encrypted_data": stmt.excluded.encrypted_data,
                "updated_at": func.now(),
            },
        )

        with self._session_factory.begin() as session:
            session.execute(stmt)

        self.audit.log(AuditEventType.CREDENTIAL_STORED, install_id=install_id)

    def delete(self, install_id: str) -> bool:
        """
        Remove the record for an install.

        Returns:
            True if a row existed and was removed
        """
        with self._session_factory.begin() as session:
            result = session.execute(
                delete(InstallToken).where(InstallToken.install_id == install_id)
            )
            deleted = result.rowcount > 0

        if deleted:
            self.audit.log(AuditEventType.CREDENTIAL_DELETED, install_id=install_id)
        return deleted

    def has_tokens(self, install_id: str) -> bool:
        """Check whether a record exists without reading the blob."""
        with self._session_factory() as session:
            found = session.execute(
                select(InstallToken.install_id)
                .where(InstallToken.install_id == install_id)
                .limit(1)
            ).first()
        return found is not None

    def close(self) -> None:
        self._engine.dispose()
        logger.info("Credential store closed")
