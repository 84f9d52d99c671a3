"""
Credential validator — decides whether a stored credential can be trusted.

Domain layer. Uses:
  - asn1crypto: PEM unarmoring and PKCS#1 / PKCS#8 key structure parsing
  - cryptography (PyCA): X.509 parsing and RSA key consistency validation

The checks run in a fixed order over a draft that accumulates what each
check decoded. The first failing check ends the run; its ErrorCode says
why the credential must be reissued:

  _require_fields        → INCOMPLETE           (tls.crt or tls.key absent)
  _parse_certificate     → CORRUPT_CERTIFICATE  (PEM decode, DER X.509 parse)
  _parse_private_key     → CORRUPT_KEY          (PEM decode, RSAPrivateKey parse)
  _validate_private_key  → INVALID_KEY          (RSA components inconsistent)
  _match_domains         → DOMAIN_MISMATCH      (DNS SANs != requested domains)

Expiry is not checked. A renewal window check would be one more entry at
the end of CHECKS.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from asn1crypto import keys as asn1_keys
from asn1crypto import pem as asn1_pem
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.extensions import ExtensionNotFound
from railway import ErrorCode
from railway.result import Result

from cert_reconciler.domain.models import (
    CertificateRequest,
    ParsedCredential,
    StoredCredential,
)
from cert_reconciler.domain.names import equal_sets

_PKCS8_LABEL = "PRIVATE KEY"


@dataclass(frozen=True, slots=True)
class _Draft:
    """What the checks have established so far about one stored credential."""

    secret: str
    domains: tuple[str, ...]
    accept_pkcs8: bool
    stored: StoredCredential
    certificate_pem: bytes = b""
    key_pem: bytes = b""
    certificate: x509.Certificate | None = None
    dns_names: tuple[str, ...] = ()
    key_fields: dict[str, Any] = field(default_factory=dict)
    private_key: rsa.RSAPrivateKey | None = None


# ─────────────────────── Decoding helpers ───────────────────────


def _unarmor(pem_bytes: bytes) -> tuple[str, bytes]:
    """Return the label and DER payload of the first PEM block in pem_bytes."""
    label, _headers, der_bytes = asn1_pem.unarmor(pem_bytes)
    return label, der_bytes


def _dns_names(cert: x509.Certificate) -> tuple[str, ...]:
    """DNS entries of the subjectAltName extension, or () when it is absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except ExtensionNotFound:
        return ()
    return tuple(ext.value.get_values_for_type(x509.DNSName))


def _load_certificate(pem_bytes: bytes) -> tuple[x509.Certificate, tuple[str, ...]]:
    _label, der_bytes = _unarmor(pem_bytes)
    cert = x509.load_der_x509_certificate(der_bytes)
    # Extensions are parsed lazily; force it here so a malformed SAN
    # counts as a corrupt certificate rather than a domain mismatch.
    return cert, _dns_names(cert)


def _load_key_fields(pem_bytes: bytes, accept_pkcs8: bool) -> dict[str, Any]:
    """
    Parse the key's ASN.1 structure without checking its arithmetic.

    The stored format is PKCS#1 RSAPrivateKey. With accept_pkcs8, a PKCS#8
    "PRIVATE KEY" block wrapping an RSA key is accepted too.
    """
    label, der_bytes = _unarmor(pem_bytes)
    if accept_pkcs8 and label == _PKCS8_LABEL:
        info = asn1_keys.PrivateKeyInfo.load(der_bytes, strict=True)
        if info.algorithm != "rsa":
            raise ValueError(f"unsupported private key algorithm {info.algorithm!r}")
        return dict(info["private_key"].parsed.native)
    return dict(asn1_keys.RSAPrivateKey.load(der_bytes, strict=True).native)


def _rsa_key_from_fields(fields: dict[str, Any]) -> rsa.RSAPrivateKey:
    """Build the key from its components; cryptography rejects inconsistent ones."""
    public_numbers = rsa.RSAPublicNumbers(e=fields["public_exponent"], n=fields["modulus"])
    private_numbers = rsa.RSAPrivateNumbers(
        p=fields["prime1"],
        q=fields["prime2"],
        d=fields["private_exponent"],
        dmp1=fields["exponent1"],
        dmq1=fields["exponent2"],
        iqmp=fields["coefficient"],
        public_numbers=public_numbers,
    )
    return private_numbers.private_key()


# ─────────────────────── Checks ───────────────────────


def _require_fields(draft: _Draft) -> Result[_Draft]:
    stored = draft.stored
    cert_pem, key_pem = stored.certificate, stored.private_key
    if cert_pem is None or key_pem is None:
        return Result.failure(
            ErrorCode.INCOMPLETE,
            f"secret '{draft.secret}' is missing certificate or private key data "
            f"(present keys: {', '.join(stored.keys) or 'none'})",
        )
    return Result.success(replace(draft, certificate_pem=cert_pem, key_pem=key_pem))


def _parse_certificate(draft: _Draft) -> Result[_Draft]:
    return Result.from_computation(
        lambda: _load_certificate(draft.certificate_pem),
        ErrorCode.CORRUPT_CERTIFICATE,
        f"error decoding TLS certificate in '{draft.secret}'",
    ).map(lambda parsed: replace(draft, certificate=parsed[0], dns_names=parsed[1]))


def _parse_private_key(draft: _Draft) -> Result[_Draft]:
    return Result.from_computation(
        lambda: _load_key_fields(draft.key_pem, draft.accept_pkcs8),
        ErrorCode.CORRUPT_KEY,
        f"error decoding private key in '{draft.secret}'",
    ).map(lambda fields: replace(draft, key_fields=fields))


def _validate_private_key(draft: _Draft) -> Result[_Draft]:
    return Result.from_computation(
        lambda: _rsa_key_from_fields(draft.key_fields),
        ErrorCode.INVALID_KEY,
        f"private key failed validation in '{draft.secret}'",
    ).map(lambda key: replace(draft, private_key=key))


def _match_domains(draft: _Draft) -> Result[_Draft]:
    if equal_sets(draft.domains, draft.dns_names):
        return Result.success(draft)
    return Result.failure(
        ErrorCode.DOMAIN_MISMATCH,
        f"list of domains on certificate in '{draft.secret}' "
        f"{sorted(draft.dns_names)} does not match requested domains {sorted(draft.domains)}",
    )


CHECKS: tuple[Callable[[_Draft], Result[_Draft]], ...] = (
    _require_fields,
    _parse_certificate,
    _parse_private_key,
    _validate_private_key,
    _match_domains,
)


def validate_credential(
    stored: StoredCredential,
    request: CertificateRequest,
    accept_pkcs8_keys: bool = False,
) -> Result[ParsedCredential]:
    """
    Run every check against a stored credential, stopping at the first failure.

    Returns Result[ParsedCredential] when the credential is valid for the
    request. Every failure raised by CHECKS carries a self-heal ErrorCode.
    """
    draft = _Draft(
        secret=request.secret_name,
        domains=request.domains,
        accept_pkcs8=accept_pkcs8_keys,
        stored=stored,
    )
    result: Result[_Draft] = Result.success(draft)
    for check in CHECKS:
        result = result.flat_map(check)
    return result.flat_map(_to_parsed)


def _to_parsed(draft: _Draft) -> Result[ParsedCredential]:
    if draft.certificate is None or draft.private_key is None:
        return Result.failure(
            ErrorCode.TECHNICAL_ERROR,
            f"checks for '{draft.secret}' ended without a decoded certificate and key",
        )
    return Result.success(
        ParsedCredential(
            certificate=draft.certificate,
            private_key=draft.private_key,
            dns_names=draft.dns_names,
        )
    )
