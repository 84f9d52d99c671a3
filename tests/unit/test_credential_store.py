"""
Unit tests for PsycopgCredentialStore with psycopg.connect patched out.

Covers result mapping only; the SQL itself is exercised against a real
PostgreSQL in tests/integration.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg
import pytest
from psycopg import errors as pg_errors
from railway import ErrorCode, ResultAssertions

from cert_reconciler.adapters.credential_store import DDL, PsycopgCredentialStore
from cert_reconciler.domain.models import TLS_CERT_KEY, TLS_PRIVATE_KEY_KEY, IssuedCredential
from cert_reconciler.domain.ports import CredentialReader, CredentialWriter

DSN = "postgresql://u:p@localhost:5432/certs"


def _connection(row: tuple | None = None, execute_error: Exception | None = None) -> MagicMock:
    """A connection whose cursor returns `row` or raises on execute."""
    conn = MagicMock()
    conn.__enter__.return_value = conn
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.fetchone.return_value = row
    if execute_error is not None:
        cursor.execute.side_effect = execute_error
        conn.execute.side_effect = execute_error
    return conn


@pytest.fixture()
def store() -> PsycopgCredentialStore:
    return PsycopgCredentialStore(dsn=DSN)


class TestPorts:
    def test_satisfies_reader_and_writer(self, store: PsycopgCredentialStore) -> None:
        assert isinstance(store, CredentialReader)
        assert isinstance(store, CredentialWriter)


class TestGet:
    """
    GIVEN a row, no row, a partial row or a database fault
    WHEN get is called
    THEN the result maps to the stored credential, NOT_FOUND or STORAGE_ERROR.
    """

    def test_returns_both_fields(self, store: PsycopgCredentialStore) -> None:
        conn = _connection(row=(memoryview(b"CERT"), b"KEY"))
        with patch("psycopg.connect", return_value=conn) as connect:
            result = store.get("default", "site-tls")

        credential = ResultAssertions.assert_success(result)
        assert credential.data == {TLS_CERT_KEY: b"CERT", TLS_PRIVATE_KEY_KEY: b"KEY"}
        connect.assert_called_once_with(DSN)

    def test_queries_by_namespace_and_name(self, store: PsycopgCredentialStore) -> None:
        conn = _connection(row=(b"C", b"K"))
        with patch("psycopg.connect", return_value=conn):
            store.get("team-a", "api-tls")

        cursor = conn.cursor.return_value.__enter__.return_value
        assert cursor.execute.call_args.args[1] == ("team-a", "api-tls")

    def test_no_row_is_not_found(self, store: PsycopgCredentialStore) -> None:
        with patch("psycopg.connect", return_value=_connection(row=None)):
            result = store.get("default", "site-tls")

        ResultAssertions.assert_failure(result, ErrorCode.NOT_FOUND)
        ResultAssertions.assert_failure_message_contains(result, "default/site-tls")

    def test_partial_row_omits_missing_key(self, store: PsycopgCredentialStore) -> None:
        with patch("psycopg.connect", return_value=_connection(row=(b"CERT", None))):
            result = store.get("default", "site-tls")

        credential = ResultAssertions.assert_success(result)
        assert credential.keys == (TLS_CERT_KEY,)
        assert credential.private_key is None

    def test_connection_error_is_storage_error(self, store: PsycopgCredentialStore) -> None:
        with patch("psycopg.connect", side_effect=psycopg.OperationalError("refused")):
            result = store.get("default", "site-tls")

        error = ResultAssertions.assert_failure(result, ErrorCode.STORAGE_ERROR)
        assert isinstance(error.exception, psycopg.OperationalError)


class TestCreate:
    """Create-only INSERT; a primary-key collision is ALREADY_EXISTS."""

    def test_inserts_both_fields(self, store: PsycopgCredentialStore) -> None:
        conn = _connection()
        credential = IssuedCredential(certificate=b"CERT", private_key=b"KEY").to_stored()
        with patch("psycopg.connect", return_value=conn):
            result = store.create("default", "site-tls", credential)

        assert ResultAssertions.assert_success(result) is credential
        cursor = conn.cursor.return_value.__enter__.return_value
        sql, params = cursor.execute.call_args.args
        assert sql.strip().startswith("INSERT INTO credentials")
        assert "UPDATE" not in sql.upper()
        assert params == ("default", "site-tls", b"CERT", b"KEY")
        conn.transaction.assert_called_once()

    def test_unique_violation_is_already_exists(self, store: PsycopgCredentialStore) -> None:
        conn = _connection(execute_error=pg_errors.UniqueViolation("duplicate key"))
        credential = IssuedCredential(certificate=b"C", private_key=b"K").to_stored()
        with patch("psycopg.connect", return_value=conn):
            result = store.create("default", "site-tls", credential)

        error = ResultAssertions.assert_failure(result, ErrorCode.ALREADY_EXISTS)
        assert isinstance(error.exception, pg_errors.UniqueViolation)

    def test_other_errors_are_storage_errors(self, store: PsycopgCredentialStore) -> None:
        conn = _connection(execute_error=pg_errors.DiskFull("no space"))
        credential = IssuedCredential(certificate=b"C", private_key=b"K").to_stored()
        with patch("psycopg.connect", return_value=conn):
            result = store.create("default", "site-tls", credential)

        ResultAssertions.assert_failure(result, ErrorCode.STORAGE_ERROR)


class TestEnsureSchema:
    def test_runs_ddl(self, store: PsycopgCredentialStore) -> None:
        conn = _connection()
        with patch("psycopg.connect", return_value=conn):
            result = store.ensure_schema()

        ResultAssertions.assert_success_value(result, "credentials")
        conn.execute.assert_called_once_with(DDL)

    def test_failure_is_storage_error(self, store: PsycopgCredentialStore) -> None:
        with patch("psycopg.connect", side_effect=psycopg.OperationalError("refused")):
            result = store.ensure_schema()

        ResultAssertions.assert_failure(result, ErrorCode.STORAGE_ERROR)
