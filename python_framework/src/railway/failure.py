"""
Failure description — structured error information for the failure track.

Every failure carries an ErrorCode, a human-readable message, an optional
causing exception and a timestamp. The codes are grouped by the policy the
reconciler applies to them:

  - Hard errors abort a reconciliation pass and surface to the caller.
  - Self-heal triggers are logged and routed into reissuance.
  - Port-level codes are produced by adapters and translated by the caller.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Hard errors:     ISSUER_NOT_FOUND, ISSUER_NOT_READY, PREPARE_FAILED,
                     STORE_READ_FAILED, ISSUANCE_FAILED, PERSIST_FAILED
    Self-heal:       MISSING, INCOMPLETE, CORRUPT_CERTIFICATE, CORRUPT_KEY,
                     INVALID_KEY, DOMAIN_MISMATCH
    Port-level:      NOT_FOUND, ALREADY_EXISTS, STORAGE_ERROR,
                     EXTERNAL_SERVICE_ERROR, CONFIGURATION_ERROR,
                     TECHNICAL_ERROR
    """

    # --- Hard errors ---
    ISSUER_NOT_FOUND = "ISSUER_NOT_FOUND"
    """The referenced issuer does not exist in the request's namespace."""

    ISSUER_NOT_READY = "ISSUER_NOT_READY"
    """The referenced issuer exists but reports ready=false."""

    PREPARE_FAILED = "PREPARE_FAILED"
    """No backend for the issuer kind, or the backend's pre-flight setup failed."""

    STORE_READ_FAILED = "STORE_READ_FAILED"
    """Reading the stored credential failed for a reason other than absence."""

    ISSUANCE_FAILED = "ISSUANCE_FAILED"
    """The issuance backend could not produce a certificate."""

    PERSIST_FAILED = "PERSIST_FAILED"
    """The issued credential could not be written to the store."""

    # --- Self-heal triggers ---
    MISSING = "MISSING"
    """No stored credential exists under the target name."""

    INCOMPLETE = "INCOMPLETE"
    """The stored credential lacks the certificate or the private key field."""

    CORRUPT_CERTIFICATE = "CORRUPT_CERTIFICATE"
    """The certificate field is not a PEM block wrapping a DER X.509 certificate."""

    CORRUPT_KEY = "CORRUPT_KEY"
    """The private key field is not a PEM block wrapping a parseable key."""

    INVALID_KEY = "INVALID_KEY"
    """The private key parsed but its components are inconsistent."""

    DOMAIN_MISMATCH = "DOMAIN_MISMATCH"
    """The certificate's DNS names differ from the requested domains."""

    # --- Port-level codes ---
    NOT_FOUND = "NOT_FOUND"
    """Lookup target does not exist."""

    ALREADY_EXISTS = "ALREADY_EXISTS"
    """Create-only write collided with an existing record."""

    STORAGE_ERROR = "STORAGE_ERROR"
    """Credential store connectivity or query failure."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """Remote issuance endpoint failure."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected failure inside a component."""


SELF_HEAL_CODES: frozenset[ErrorCode] = frozenset(
    {
        ErrorCode.MISSING,
        ErrorCode.INCOMPLETE,
        ErrorCode.CORRUPT_CERTIFICATE,
        ErrorCode.CORRUPT_KEY,
        ErrorCode.INVALID_KEY,
        ErrorCode.DOMAIN_MISMATCH,
    }
)

HARD_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        ErrorCode.ISSUER_NOT_FOUND,
        ErrorCode.ISSUER_NOT_READY,
        ErrorCode.PREPARE_FAILED,
        ErrorCode.STORE_READ_FAILED,
        ErrorCode.ISSUANCE_FAILED,
        ErrorCode.PERSIST_FAILED,
    }
)


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.MISSING, "secret 'site-tls' not found")
    >>> desc.code
    <ErrorCode.MISSING: 'MISSING'>
    >>> desc.is_self_heal
    True
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_self_heal(self) -> bool:
        """True when the reconciler should reissue instead of surfacing this failure."""
        return self.code in SELF_HEAL_CODES

    @property
    def is_hard_error(self) -> bool:
        return self.code in HARD_ERROR_CODES

    def recode(self, code: ErrorCode, prefix: str) -> FailureDescription:
        """
        Translate a port-level failure into a reconciler failure.

        Keeps the causing exception and prefixes the original message:

            >>> FailureDescription(ErrorCode.STORAGE_ERROR, "timeout").recode(
            ...     ErrorCode.PERSIST_FAILED, "error saving certificate"
            ... ).message
            'error saving certificate: timeout'
        """
        return FailureDescription(
            code=code,
            message=f"{prefix}: {self.message}",
            exception=self.exception,
        )

    def full_stack_trace(self) -> str:
        """Full stack trace string including the message and exception chain."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        )
        return f"{self.message}\n{tb}"
