"""
Ports — Protocol-based interfaces for the reconciler's collaborators.

These define WHAT the reconciler needs (contracts) without specifying
HOW it's done (implementation). Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters satisfy
the contract simply by implementing the methods — no inheritance.

Error-kind contract:
  IssuerLister.get       → NOT_FOUND when the issuer does not exist
  CredentialReader.get   → NOT_FOUND when the credential does not exist,
                           any other code for infrastructure faults
  CredentialWriter.create→ ALREADY_EXISTS when the name is taken,
                           any other code for infrastructure faults
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from railway.result import Result

from cert_reconciler.domain.models import (
    CertificateRequest,
    IssuedCredential,
    IssuerDescriptor,
    StoredCredential,
)


@runtime_checkable
class IssuerLister(Protocol):
    """Port: look up an issuer descriptor by namespace and name."""

    def get(self, namespace: str, name: str) -> Result[IssuerDescriptor]: ...


@runtime_checkable
class IssuerBackend(Protocol):
    """
    Port: one issuance implementation.

    `prepare` performs issuer-specific pre-flight setup and runs on every
    pass, whether or not issuance follows. `issue` returns the PEM-encoded
    certificate and private key for the request.
    """

    def prepare(self, request: CertificateRequest) -> Result[CertificateRequest]: ...

    def issue(self, request: CertificateRequest) -> Result[IssuedCredential]: ...


@runtime_checkable
class IssuerFactory(Protocol):
    """Port: resolve the backend implementation for an issuer's kind."""

    def backend_for(self, issuer: IssuerDescriptor) -> Result[IssuerBackend]: ...


@runtime_checkable
class CredentialReader(Protocol):
    """Port: read a stored credential by namespace and name."""

    def get(self, namespace: str, name: str) -> Result[StoredCredential]: ...


@runtime_checkable
class CredentialWriter(Protocol):
    """
    Port: create a stored credential.

    Create-only: there is no update operation. Writing onto an existing
    name fails with ALREADY_EXISTS and leaves the existing record untouched.
    """

    def create(
        self,
        namespace: str,
        name: str,
        credential: StoredCredential,
    ) -> Result[StoredCredential]: ...


@dataclass(frozen=True, slots=True)
class ReconcileContext:
    """
    Everything a reconciliation pass reads from or writes to.

    Passed explicitly into every call so tests can substitute fakes.
    `log` is a structlog logger; it receives diagnostics and is never
    consulted for control flow.
    """

    issuers: IssuerLister
    backends: IssuerFactory
    reader: CredentialReader
    writer: CredentialWriter
    log: Any
    accept_pkcs8_keys: bool = False
