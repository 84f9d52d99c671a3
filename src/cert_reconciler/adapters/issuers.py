"""
Issuer adapters — issuer lookup, backend dispatch, and the self-signed backend.

Adapter layer — implements the IssuerLister, IssuerFactory and IssuerBackend
ports:

  StaticIssuerLister  → issuer descriptors from configuration
  IssuerRegistry      → lookup table: issuer kind → backend builder
  SelfSignedIssuer    → cryptography (PyCA) RSA key + self-signed X.509

Backends are built per issuer from the descriptor's options, so two issuers
of the same kind can differ in key size or endpoint.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Iterable, Mapping

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from railway import ErrorCode, ResultFailures
from railway.result import Result

from cert_reconciler.adapters.http_issuer import HttpIssuer
from cert_reconciler.domain.models import (
    CertificateRequest,
    IssuedCredential,
    IssuerDescriptor,
)
from cert_reconciler.domain.ports import IssuerBackend

log = structlog.get_logger()

type BackendBuilder = Callable[[IssuerDescriptor], IssuerBackend]

# X.520 upper bound for commonName; DNS names may run to 253 characters.
_MAX_COMMON_NAME_BYTES = 64


def _subject(first_domain: str) -> x509.Name:
    """CN=first_domain, or an empty subject when the name is too long for a CN."""
    if len(first_domain.encode()) > _MAX_COMMON_NAME_BYTES:
        return x509.Name([])
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, first_domain)])


class StaticIssuerLister:
    """
    Serve issuer descriptors from a fixed collection.

    Implements the IssuerLister port. Unknown issuers yield NOT_FOUND.
    """

    def __init__(self, issuers: Iterable[IssuerDescriptor]) -> None:
        self._issuers = {(i.namespace, i.name): i for i in issuers}

    def get(self, namespace: str, name: str) -> Result[IssuerDescriptor]:
        return Result.from_optional(
            self._issuers.get((namespace, name)),
            f"issuer '{namespace}/{name}' not found",
            ErrorCode.NOT_FOUND,
        )


class IssuerRegistry:
    """
    Resolve the backend implementation for an issuer by its kind.

    Implements the IssuerFactory port.
    """

    def __init__(self, builders: Mapping[str, BackendBuilder]) -> None:
        self._builders = dict(builders)

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._builders))

    def backend_for(self, issuer: IssuerDescriptor) -> Result[IssuerBackend]:
        builder = self._builders.get(issuer.kind)
        if builder is None:
            return ResultFailures.configuration_error(
                f"no issuer implementation for kind '{issuer.kind}' "
                f"(known kinds: {', '.join(self.kinds) or 'none'})",
            )
        return Result.from_computation(
            lambda: builder(issuer),
            ErrorCode.CONFIGURATION_ERROR,
            f"Invalid options for issuer '{issuer.namespace}/{issuer.name}'",
        )


class SelfSignedIssuer:
    """
    Issue self-signed certificates covering the requested domains.

    Implements the IssuerBackend port. The private key is RSA, serialized as
    PKCS#1 ("RSA PRIVATE KEY") PEM, the format the reconciler validates.
    """

    def __init__(self, key_size: int = 2048, validity_days: int = 90) -> None:
        if key_size < 2048:
            raise ValueError(f"key_size must be at least 2048, got {key_size}")
        if validity_days < 1:
            raise ValueError(f"validity_days must be positive, got {validity_days}")
        self._key_size = key_size
        self._validity = datetime.timedelta(days=validity_days)

    def prepare(self, request: CertificateRequest) -> Result[CertificateRequest]:
        """Nothing to set up; only reject requests that cannot be issued."""
        if not request.domains:
            return ResultFailures.configuration_error(
                f"certificate '{request.qualified_name}' lists no domains"
            )
        return Result.success(request)

    def issue(self, request: CertificateRequest) -> Result[IssuedCredential]:
        return Result.from_computation(
            lambda: self._generate(request),
            ErrorCode.TECHNICAL_ERROR,
            "Self-signed certificate generation failed",
        )

    def _generate(self, request: CertificateRequest) -> IssuedCredential:
        key = rsa.generate_private_key(public_exponent=65537, key_size=self._key_size)
        name = _subject(request.domains[0])
        now = datetime.datetime.now(datetime.UTC)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + self._validity)
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(d) for d in request.domains]),
                critical=not name,
            )
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .sign(key, hashes.SHA256())
        )
        log.info(
            "self_signed.issued",
            certificate=request.qualified_name,
            domains=list(request.domains),
            serial=hex(cert.serial_number),
            not_after=cert.not_valid_after_utc.isoformat(),
        )
        return IssuedCredential(
            certificate=cert.public_bytes(serialization.Encoding.PEM),
            private_key=key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            ),
        )


def default_registry(http_timeout: int = 30) -> IssuerRegistry:
    """The built-in backends, keyed by the issuer kinds configuration accepts."""
    return IssuerRegistry(
        {
            "self-signed": lambda issuer: SelfSignedIssuer(
                key_size=int(issuer.options.get("key_size", 2048)),
                validity_days=int(issuer.options.get("validity_days", 90)),
            ),
            "http": lambda issuer: HttpIssuer(
                url=issuer.options["url"],
                timeout=http_timeout,
            ),
        }
    )
