"""
Railway-Oriented Programming (ROP) Framework for Python.

Explicit, composable, functional error handling — no exceptions in business logic.

    from railway import Result, ErrorCode

    def require_ready(issuer: IssuerDescriptor) -> Result[IssuerDescriptor]:
        if not issuer.ready:
            return Result.failure(ErrorCode.ISSUER_NOT_READY, f"issuer '{issuer.name}' not ready")
        return Result.success(issuer)

    result = lister.get("default", "prod-ca").flat_map(require_ready)
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription, HARD_ERROR_CODES, SELF_HEAL_CODES
from railway.execution import (
    ExecutionContext,
    NoOpExecutionContext,
    LoggingExecutionContext,
)
from railway.result_failures import ResultFailures
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "HARD_ERROR_CODES",
    "SELF_HEAL_CODES",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultFailures",
    "ResultAssertions",
]

__version__ = "1.1.0"
