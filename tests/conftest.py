"""
Shared test fixtures and helpers for the cert-reconciler test suite.

Generates real PEM material with cryptography (PyCA) so the validator is
exercised against genuine certificates and keys, plus deliberately broken
variants built with asn1crypto. RSA key generation is slow, so keys are
generated once per session.
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from types import MappingProxyType
from unittest.mock import MagicMock

import pytest
from asn1crypto import keys as asn1_keys
from asn1crypto import pem as asn1_pem
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from cert_reconciler.domain.models import (
    TLS_CERT_KEY,
    TLS_PRIVATE_KEY_KEY,
    CertificateRequest,
    IssuerDescriptor,
    StoredCredential,
)

# ─────────────────────── PEM builders ───────────────────────


def make_certificate_pem(
    key: rsa.RSAPrivateKey,
    domains: Sequence[str],
    with_san: bool = True,
) -> bytes:
    """Self-signed certificate for `domains`, PEM-encoded."""
    common_name = domains[0] if domains else "no-domains.invalid"
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
    )
    if with_san:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
    return builder.sign(key, hashes.SHA256()).public_bytes(serialization.Encoding.PEM)


def pkcs1_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """The legacy 'RSA PRIVATE KEY' encoding the reconciler stores."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def pkcs8_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """The modern 'PRIVATE KEY' encoding."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def inconsistent_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """
    A structurally valid PKCS#1 key whose primes no longer multiply to the modulus.

    Parses fine as ASN.1, fails arithmetic validation.
    """
    numbers = key.private_numbers()
    der = asn1_keys.RSAPrivateKey(
        {
            "version": 0,
            "modulus": numbers.public_numbers.n,
            "public_exponent": numbers.public_numbers.e,
            "private_exponent": numbers.d,
            "prime1": numbers.p + 2,
            "prime2": numbers.q,
            "exponent1": numbers.dmp1,
            "exponent2": numbers.dmq1,
            "coefficient": numbers.iqmp,
        }
    ).dump()
    return asn1_pem.armor("RSA PRIVATE KEY", der)


def garbage_pem(label: str) -> bytes:
    """A well-formed PEM block around bytes that are not valid DER."""
    return asn1_pem.armor(label, b"this is not DER at all")


def stored(cert: bytes | None, key: bytes | None) -> StoredCredential:
    data = {}
    if cert is not None:
        data[TLS_CERT_KEY] = cert
    if key is not None:
        data[TLS_PRIVATE_KEY_KEY] = key
    return StoredCredential(data=MappingProxyType(data))


def make_request(
    domains: Sequence[str] = ("example.com",),
    issuer_ref: str = "prod-ca",
    secret_name: str = "site-tls",
    namespace: str = "default",
    name: str = "site",
) -> CertificateRequest:
    return CertificateRequest(
        name=name,
        namespace=namespace,
        issuer_ref=issuer_ref,
        secret_name=secret_name,
        domains=tuple(domains),
    )


def make_issuer(
    name: str = "prod-ca",
    ready: bool = True,
    kind: str = "self-signed",
    namespace: str = "default",
) -> IssuerDescriptor:
    return IssuerDescriptor(name=name, namespace=namespace, kind=kind, ready=ready)


# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """One 2048-bit RSA key shared by the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture()
def valid_credential(rsa_key: rsa.RSAPrivateKey) -> StoredCredential:
    """A stored credential that is valid for make_request()."""
    return stored(
        make_certificate_pem(rsa_key, ["example.com"]),
        pkcs1_key_pem(rsa_key),
    )


@pytest.fixture()
def log() -> MagicMock:
    """Stand-in for the structlog diagnostic sink."""
    return MagicMock()
