"""
PostgreSQL credential store adapter — create-only TLS secret persistence.

Adapter layer — implements the CredentialReader and CredentialWriter ports
using psycopg (v3) with parameterized queries.

Table:
  credentials (namespace, name) PRIMARY KEY
              tls_crt, tls_key   BYTEA, nullable (a partial row reads back
                                 as a credential without that key)
              created_at         TIMESTAMPTZ

Writes are a single INSERT: both fields land together or not at all, and the
primary key turns a concurrent duplicate into ALREADY_EXISTS instead of an
overwrite. There is no UPDATE path.

No ORM — raw parameterized SQL for maximum control and transparency.
"""

from __future__ import annotations

from types import MappingProxyType

import psycopg
import structlog
from psycopg import errors as pg_errors
from railway import ErrorCode, FailureDescription
from railway.result import Result

from cert_reconciler.domain.models import (
    TLS_CERT_KEY,
    TLS_PRIVATE_KEY_KEY,
    StoredCredential,
)

log = structlog.get_logger()

DDL = """
CREATE TABLE IF NOT EXISTS credentials (
    namespace   TEXT        NOT NULL,
    name        TEXT        NOT NULL,
    tls_crt     BYTEA,
    tls_key     BYTEA,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (namespace, name)
)
"""

_SELECT = """
SELECT tls_crt, tls_key FROM credentials WHERE namespace = %s AND name = %s
"""

_INSERT = """
INSERT INTO credentials (namespace, name, tls_crt, tls_key) VALUES (%s, %s, %s, %s)
"""


class PsycopgCredentialStore:
    """
    Read and create stored credentials in PostgreSQL.

    Implements the CredentialReader and CredentialWriter ports.
    All exceptions are caught at this adapter boundary via Result.from_computation().
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def ensure_schema(self) -> Result[str]:
        """Create the credentials table if it does not exist yet."""
        return Result.from_computation(
            self._create_table,
            ErrorCode.STORAGE_ERROR,
            "Failed to create credentials table",
        )

    def get(self, namespace: str, name: str) -> Result[StoredCredential]:
        """
        Fetch the credential stored under namespace/name.

        Returns NOT_FOUND when no row exists, STORAGE_ERROR on any database fault.
        """
        return Result.from_computation(
            lambda: self._select(namespace, name),
            ErrorCode.STORAGE_ERROR,
            f"Failed to read credential '{namespace}/{name}'",
        ).flat_map(
            lambda found: Result.from_optional(
                found,
                f"credential '{namespace}/{name}' not found",
                ErrorCode.NOT_FOUND,
            )
        )

    def create(
        self,
        namespace: str,
        name: str,
        credential: StoredCredential,
    ) -> Result[StoredCredential]:
        """
        Insert a new credential; never overwrites.

        Returns ALREADY_EXISTS when namespace/name is taken,
        STORAGE_ERROR on any other database fault.
        """
        return Result.from_computation(
            lambda: self._insert(namespace, name, credential),
            ErrorCode.STORAGE_ERROR,
            f"Failed to create credential '{namespace}/{name}'",
        ).map_failure(_flag_duplicate)

    def _create_table(self) -> str:
        with psycopg.connect(self._dsn) as conn:
            conn.execute(DDL)
        return "credentials"

    def _select(self, namespace: str, name: str) -> StoredCredential | None:
        with psycopg.connect(self._dsn) as conn, conn.cursor() as cur:
            cur.execute(_SELECT, (namespace, name))
            row = cur.fetchone()
        if row is None:
            return None
        tls_crt, tls_key = row
        data = {
            key: bytes(value)
            for key, value in ((TLS_CERT_KEY, tls_crt), (TLS_PRIVATE_KEY_KEY, tls_key))
            if value is not None
        }
        return StoredCredential(data=MappingProxyType(data))

    def _insert(self, namespace: str, name: str, credential: StoredCredential) -> StoredCredential:
        with psycopg.connect(self._dsn) as conn, conn.transaction(), conn.cursor() as cur:
            cur.execute(
                _INSERT,
                (namespace, name, credential.certificate, credential.private_key),
            )
        log.info("store.created", namespace=namespace, name=name, keys=list(credential.keys))
        return credential


def _flag_duplicate(err: FailureDescription) -> FailureDescription:
    """The primary key rejected the INSERT: another writer created it first."""
    if isinstance(err.exception, pg_errors.UniqueViolation):
        return FailureDescription(
            code=ErrorCode.ALREADY_EXISTS,
            message=err.message,
            exception=err.exception,
        )
    return err
