"""
In-memory port implementations for reconciler tests.

Unlike MagicMock ports these keep state between calls, so a test can run
several passes against one store and observe what was written.
"""

from __future__ import annotations

import threading
from types import MappingProxyType

from railway import ErrorCode, ResultFailures
from railway.result import Result

from cert_reconciler.domain.models import StoredCredential


class InMemoryCredentialStore:
    """
    Create-only credential store backed by a dict.

    Implements CredentialReader and CredentialWriter. Records every create
    attempt in `creates`, including the ones rejected as duplicates.
    """

    def __init__(self, initial: dict[tuple[str, str], StoredCredential] | None = None) -> None:
        self._data: dict[tuple[str, str], StoredCredential] = dict(initial or {})
        self._lock = threading.Lock()
        self.creates: list[tuple[str, str]] = []

    def get(self, namespace: str, name: str) -> Result[StoredCredential]:
        with self._lock:
            found = self._data.get((namespace, name))
        return Result.from_optional(
            found,
            f"credential '{namespace}/{name}' not found",
            ErrorCode.NOT_FOUND,
        )

    def create(
        self,
        namespace: str,
        name: str,
        credential: StoredCredential,
    ) -> Result[StoredCredential]:
        with self._lock:
            self.creates.append((namespace, name))
            if (namespace, name) in self._data:
                return ResultFailures.already_exists("credential", f"{namespace}/{name}")
            saved = StoredCredential(data=MappingProxyType(dict(credential.data)))
            self._data[(namespace, name)] = saved
            return Result.success(saved)

    def stored(self, namespace: str, name: str) -> StoredCredential | None:
        return self._data.get((namespace, name))
