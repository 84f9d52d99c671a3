"""
Domain models — immutable data structures for certificate reconciliation.

These are pure value objects with no behavior beyond self-description.
A CertificateRequest states what credential should exist; a StoredCredential
is what the store actually holds; a ParsedCredential is the decoded form of
a StoredCredential that exists only for the duration of one validation pass.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

# Data keys of a kubernetes.io/tls secret. Ingress controllers and load
# balancers read these exact names, so they must not change.
TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY_KEY = "tls.key"


@dataclass(frozen=True, slots=True)
class CertificateRequest:
    """
    Desired state: a credential named `secret_name` in `namespace`, issued by
    `issuer_ref`, covering exactly `domains`.

    `domains` is ordered as declared but compared as a set.
    """

    name: str
    namespace: str
    issuer_ref: str
    secret_name: str
    domains: tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, slots=True)
class IssuerDescriptor:
    """
    A named issuance backend configuration.

    `kind` selects the backend implementation; `options` carries the
    backend-specific settings (endpoint URL, key size, validity).
    """

    name: str
    namespace: str
    kind: str
    ready: bool = False
    options: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StoredCredential:
    """
    The persisted artifact: well-known key → raw bytes.

    Either key may be absent in data read back from the store; the reconciler
    treats that as an incomplete credential.
    """

    data: Mapping[str, bytes] = field(default_factory=dict, repr=False)

    @property
    def certificate(self) -> bytes | None:
        return self.data.get(TLS_CERT_KEY)

    @property
    def private_key(self) -> bytes | None:
        return self.data.get(TLS_PRIVATE_KEY_KEY)

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(sorted(self.data))


@dataclass(frozen=True, slots=True)
class IssuedCredential:
    """PEM-encoded certificate and private key as returned by an issuance backend."""

    certificate: bytes = field(repr=False)
    private_key: bytes = field(repr=False)

    def to_stored(self) -> StoredCredential:
        """Both fields populated together, ready for a single create."""
        return StoredCredential(
            data=MappingProxyType(
                {
                    TLS_CERT_KEY: self.certificate,
                    TLS_PRIVATE_KEY_KEY: self.private_key,
                }
            )
        )


@dataclass(frozen=True, slots=True)
class ParsedCredential:
    """
    A stored credential that decoded, parsed and validated.

    Lives only inside one reconciliation pass and is never persisted.
    """

    certificate: x509.Certificate = field(repr=False)
    private_key: rsa.RSAPrivateKey = field(repr=False)
    dns_names: tuple[str, ...] = ()


class ReconcileOutcome(StrEnum):
    """Successful results of a reconciliation pass."""

    UP_TO_DATE = "up-to-date"
    """Stored credential is valid for the request; nothing was written."""

    ISSUED = "issued"
    """A new credential was issued and created in the store."""

    ALREADY_EXISTS = "already-exists"
    """A credential was issued but a concurrent pass created it first."""
