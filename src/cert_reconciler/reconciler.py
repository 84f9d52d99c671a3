"""
Reconciler — the per-request decision and issuance flow.

Domain layer — this is PURE BUSINESS LOGIC. All I/O goes through the ports
bundled in a ReconcileContext.

One pass is a railway:

  issuers.get(namespace, issuer_ref)         → ISSUER_NOT_FOUND
    → ensure ready                           → ISSUER_NOT_READY
      → backends.backend_for + prepare       → PREPARE_FAILED
        → reader.get(namespace, secret_name) → MISSING | STORE_READ_FAILED
          → validate_credential              → INCOMPLETE | CORRUPT_* |
                                               INVALID_KEY | DOMAIN_MISMATCH
            → UP_TO_DATE

Every failure from the read/validate stretch reaches _dispatch. Self-heal
codes are logged and answered with issue(); anything else is returned
unchanged as a hard error.
"""

from __future__ import annotations

from typing import Any

from railway import ErrorCode, FailureDescription, ResultFailures
from railway.result import Result

from cert_reconciler.domain.models import (
    CertificateRequest,
    IssuedCredential,
    IssuerDescriptor,
    ReconcileOutcome,
    StoredCredential,
)
from cert_reconciler.domain.ports import IssuerBackend, ReconcileContext
from cert_reconciler.validator import validate_credential


def _request_fields(request: CertificateRequest) -> dict[str, Any]:
    return {
        "namespace": request.namespace,
        "certificate": request.name,
        "secret": request.secret_name,
        "issuer": request.issuer_ref,
    }


# ─────────────────────── Issuer resolution ───────────────────────


def _resolve_issuer(
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[IssuerDescriptor]:
    """Look up the issuer and refuse to go further unless it is ready."""
    return (
        context.issuers.get(request.namespace, request.issuer_ref)
        .map_failure(
            lambda err: ResultFailures.issuer_not_found(request.issuer_ref, request.name).error()
        )
        .ensure(
            lambda issuer: issuer.ready,
            ResultFailures.issuer_not_ready(
                request.namespace, request.issuer_ref, request.name
            ).error(),
        )
    )


def _prepare_backend(
    issuer: IssuerDescriptor,
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[IssuerBackend]:
    """Resolve the backend for the issuer's kind and run its pre-flight setup."""
    return (
        context.backends.backend_for(issuer)
        .map_failure(
            lambda err: err.recode(
                ErrorCode.PREPARE_FAILED,
                f"error getting issuer implementation for issuer '{issuer.name}'",
            )
        )
        .flat_map(
            lambda backend: backend.prepare(request)
            .map(lambda _: backend)
            .map_failure(
                lambda err: err.recode(
                    ErrorCode.PREPARE_FAILED,
                    f"error preparing issuer '{issuer.name}' for certificate '{request.name}'",
                )
            )
        )
    )


# ─────────────────────── Stored credential ───────────────────────


def _read_stored(
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[StoredCredential]:
    """NOT_FOUND becomes the MISSING self-heal trigger; other faults are hard errors."""

    def _classify(err: FailureDescription) -> FailureDescription:
        if err.code is ErrorCode.NOT_FOUND:
            return err.recode(ErrorCode.MISSING, f"secret '{request.secret_name}' does not exist")
        return err.recode(
            ErrorCode.STORE_READ_FAILED,
            f"error reading secret '{request.namespace}/{request.secret_name}'",
        )

    return context.reader.get(request.namespace, request.secret_name).map_failure(_classify)


def _evaluate(
    backend: IssuerBackend,
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[ReconcileOutcome]:
    verdict = _read_stored(request, context).flat_map(
        lambda stored: validate_credential(stored, request, context.accept_pkcs8_keys)
    )
    return verdict.either(
        on_success=lambda parsed: Result.success(ReconcileOutcome.UP_TO_DATE),
        on_failure=lambda err: _dispatch(err, backend, request, context),
    )


def _dispatch(
    err: FailureDescription,
    backend: IssuerBackend,
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[ReconcileOutcome]:
    """The self-heal policy: reissue on SELF_HEAL_CODES, surface everything else."""
    if err.is_self_heal:
        context.log.warning(
            "reconcile.self_heal",
            reason=err.code.value,
            detail=err.message,
            **_request_fields(request),
        )
        return issue(backend, request, context)
    return Result.failure_from(err)


# ─────────────────────── Public API ───────────────────────


def reconcile(
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[ReconcileOutcome]:
    """
    Bring the stored credential for one request in line with the request.

    Flow:
      1. Resolve the issuer (must exist and be ready)
      2. Resolve and prepare its backend (always, before any read)
      3. Read and validate the stored credential
      4. Valid → UP_TO_DATE with no writes; self-heal failure → issue()

    Returns Result[ReconcileOutcome] on success, or the hard error that
    stopped the pass. Repeated calls against a valid credential never write.
    """
    return (
        _resolve_issuer(request, context)
        .flat_map(lambda issuer: _prepare_backend(issuer, request, context))
        .flat_map(lambda backend: _evaluate(backend, request, context))
        .peek(lambda outcome: context.log.info(
            "reconcile.completed", outcome=outcome.value, **_request_fields(request)
        ))
        .peek_failure(lambda err: context.log.error(
            "reconcile.failed", code=err.code.value, error=err.message, **_request_fields(request)
        ))
    )


def issue(
    backend: IssuerBackend,
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[ReconcileOutcome]:
    """
    Obtain a new credential from the backend and create it in the store.

    The write is create-only. ALREADY_EXISTS means a concurrent pass created
    the credential first; that satisfies the request and counts as success.
    Replacing an existing credential requires deleting it outside this flow.
    """
    return (
        backend.issue(request)
        .map_failure(lambda err: err.recode(ErrorCode.ISSUANCE_FAILED, "error issuing certificate"))
        .flat_map(lambda issued: _persist(issued, request, context))
    )


def _persist(
    issued: IssuedCredential,
    request: CertificateRequest,
    context: ReconcileContext,
) -> Result[ReconcileOutcome]:
    def _benign_duplicate(err: FailureDescription) -> ReconcileOutcome:
        context.log.info(
            "issue.already_exists", detail=err.message, **_request_fields(request)
        )
        return ReconcileOutcome.ALREADY_EXISTS

    return (
        context.writer.create(request.namespace, request.secret_name, issued.to_stored())
        .map(lambda _: ReconcileOutcome.ISSUED)
        .recover_when(ErrorCode.ALREADY_EXISTS, _benign_duplicate)
        .map_failure(lambda err: err.recode(ErrorCode.PERSIST_FAILED, "error saving certificate"))
    )
