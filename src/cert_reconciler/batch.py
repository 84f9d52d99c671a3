"""
Batch — one reconciliation pass per configured certificate request.

Each request is reconciled independently: a hard error for one request is
recorded in the report and the remaining requests still run. The batch as a
whole succeeds even when individual requests fail; the scheduler decides
what to log, and the next scheduled run is the retry.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from railway import Failure, FailureDescription, Success
from railway.result import Result

from cert_reconciler.domain.models import CertificateRequest, ReconcileOutcome
from cert_reconciler.domain.ports import ReconcileContext
from cert_reconciler.reconciler import reconcile


@dataclass(frozen=True, slots=True)
class BatchReport:
    """Per-request results of one batch run, keyed by namespace/name."""

    outcomes: dict[str, ReconcileOutcome] = field(default_factory=dict)
    failures: dict[str, FailureDescription] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.outcomes) + len(self.failures)

    @property
    def issued(self) -> int:
        return sum(1 for o in self.outcomes.values() if o is ReconcileOutcome.ISSUED)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "issued": self.issued,
            "up_to_date": sum(
                1 for o in self.outcomes.values() if o is ReconcileOutcome.UP_TO_DATE
            ),
            "already_exists": sum(
                1 for o in self.outcomes.values() if o is ReconcileOutcome.ALREADY_EXISTS
            ),
            "failed": len(self.failures),
        }


def reconcile_all(
    requests: Sequence[CertificateRequest],
    context: ReconcileContext,
) -> Result[BatchReport]:
    """
    Reconcile every request, collecting outcomes and failures.

    Returns Result.success(BatchReport) in all cases where the loop itself
    completes; per-request hard errors live in BatchReport.failures.
    """
    report = BatchReport()
    for request in requests:
        match reconcile(request, context):
            case Success(outcome):
                report.outcomes[request.qualified_name] = outcome
            case Failure(err):
                report.failures[request.qualified_name] = err
    context.log.info("batch.completed", **report.summary())
    return Result.success(report)
