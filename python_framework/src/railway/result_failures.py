"""
Convenience factory methods for the reconciler's failure codes.

    from railway import ResultFailures

    # Instead of:
    Result.failure(ErrorCode.ISSUER_NOT_FOUND, "issuer 'prod-ca' for certificate 'site' does not exist")

    # Write:
    ResultFailures.issuer_not_found("prod-ca", "site")
"""

from __future__ import annotations

from railway.failure import ErrorCode
from railway.result import Result


class ResultFailures:
    """Factory methods for the most frequent failures."""

    @staticmethod
    def not_found(resource_type: str, identifier: str) -> Result:
        """Lookup target doesn't exist."""
        return Result.failure(
            ErrorCode.NOT_FOUND,
            f"{resource_type} '{identifier}' not found",
        )

    @staticmethod
    def already_exists(resource_type: str, identifier: str) -> Result:
        """Create-only write collided with an existing record."""
        return Result.failure(
            ErrorCode.ALREADY_EXISTS,
            f"{resource_type} '{identifier}' already exists",
        )

    @staticmethod
    def issuer_not_found(issuer: str, certificate: str) -> Result:
        return Result.failure(
            ErrorCode.ISSUER_NOT_FOUND,
            f"issuer '{issuer}' for certificate '{certificate}' does not exist",
        )

    @staticmethod
    def issuer_not_ready(namespace: str, issuer: str, certificate: str) -> Result:
        return Result.failure(
            ErrorCode.ISSUER_NOT_READY,
            f"issuer '{namespace}/{issuer}' for certificate '{certificate}' not ready",
        )

    @staticmethod
    def configuration_error(message: str) -> Result:
        """System misconfiguration."""
        return Result.failure(ErrorCode.CONFIGURATION_ERROR, message)
