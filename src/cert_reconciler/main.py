"""
Application entry point — wires dependencies and starts the scheduler.

Composition root: creates concrete adapters, bundles them into a
ReconcileContext, and hands the batch to the scheduler.

This is the ONLY place where concrete classes are instantiated.
Everything else depends on Protocol interfaces.

Responsibilities:
  1. Configure structlog for structured logging
  2. Load and validate configuration from environment
  3. Create concrete adapters (issuer lister, backend registry, credential store)
  4. Wire the batch (partial application with the context)
  5. Create and start the scheduler
"""

from __future__ import annotations

import logging
import sys
from functools import partial

import structlog

from cert_reconciler import __version__
from cert_reconciler.adapters.credential_store import PsycopgCredentialStore
from cert_reconciler.adapters.issuers import StaticIssuerLister, default_registry
from cert_reconciler.batch import reconcile_all
from cert_reconciler.config import AppSettings
from cert_reconciler.domain.ports import ReconcileContext
from cert_reconciler.scheduler import create_scheduler


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Key/value events rendered by the console renderer; the level filter
    comes from LOG_LEVEL and falls back to INFO for unknown names.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_context(settings: AppSettings, store: PsycopgCredentialStore) -> ReconcileContext:
    """
    Instantiate the remaining adapters and bundle them with the store.

    One PsycopgCredentialStore serves as both reader and writer.
    """
    return ReconcileContext(
        issuers=StaticIssuerLister(settings.issuer_descriptors()),
        backends=default_registry(http_timeout=settings.http_timeout_seconds),
        reader=store,
        writer=store,
        log=structlog.get_logger("cert_reconciler.reconciler"),
        accept_pkcs8_keys=settings.validation.accept_pkcs8_keys,
    )


def main() -> None:
    """Wire dependencies and launch the scheduled reconciliation."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
        issuers=len(settings.issuers),
        certificates=len(settings.certificates),
    )

    store = PsycopgCredentialStore(dsn=settings.database.get_dsn())
    schema = store.ensure_schema()
    if schema.is_failure():
        log.error("app.schema_failed", error=schema.error().message)
        sys.exit(1)

    context = create_context(settings, store)
    batch_fn = partial(
        reconcile_all,
        requests=settings.certificate_requests(),
        context=context,
    )

    scheduler = create_scheduler(
        batch_fn=batch_fn,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
    )

    log.info("app.scheduler_starting", cron=settings.scheduler.cron)

    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("app.shutdown", reason="signal received")
    except SystemExit:
        log.info("app.shutdown", reason="signal received")
        raise
    except Exception as e:
        log.error("app.fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
