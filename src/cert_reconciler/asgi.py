"""
FastAPI + Uvicorn ASGI application for Kubernetes deployment.

Runs the reconciler as a web service with health check endpoints and a
background scheduler. Uvicorn serves this app with graceful shutdown
(SIGTERM → drain + exit).

Architecture:
  - FastAPI: lightweight web framework
  - Uvicorn: production ASGI server (handles signals, graceful shutdown)
  - APScheduler: runs in a background thread while Uvicorn serves probes
  - K8s Probes: liveness (scheduler thread alive) + readiness (scheduler started)

Entry point for production: uvicorn cert_reconciler.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from railway.result import Result

from cert_reconciler import __version__
from cert_reconciler.adapters.credential_store import PsycopgCredentialStore
from cert_reconciler.batch import BatchReport, reconcile_all
from cert_reconciler.config import AppSettings
from cert_reconciler.main import configure_structlog, create_context
from cert_reconciler.scheduler import create_scheduler

# ─────────────────────── Global State ───────────────────────
# Set during app startup and read by the probes.

_scheduler_thread: threading.Thread | None = None
_scheduler_started = False
_scheduler_ready = False
_error_message: str | None = None
_batch_fn: Callable[[], Result[BatchReport]] | None = None
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan context manager — runs on startup and shutdown.

    Startup: create adapters and start the scheduler in a background thread.
    Shutdown: stop the scheduler and join the thread.
    """
    global _scheduler_thread, _scheduler_ready, _error_message, _batch_fn

    log.info("asgi.startup", phase="lifespan")

    try:
        settings = AppSettings()
    except Exception as e:
        error_msg = f"Configuration error: {e}"
        _error_message = error_msg
        log.error("asgi.startup_error", error=error_msg)
        raise

    configure_structlog(settings.log_level)

    log.info(
        "asgi.startup_config",
        version=__version__,
        log_level=settings.log_level,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
    )

    try:
        store = PsycopgCredentialStore(dsn=settings.database.get_dsn())
        schema = store.ensure_schema()
        if schema.is_failure():
            raise RuntimeError(schema.error().message)

        _batch_fn = partial(
            reconcile_all,
            requests=settings.certificate_requests(),
            context=create_context(settings, store),
        )
        scheduler = create_scheduler(
            batch_fn=_batch_fn,
            cron=settings.scheduler.cron,
            run_on_startup=settings.run_on_startup,
        )
    except Exception as e:
        error_msg = f"Failed to initialize adapters/scheduler: {e}"
        _error_message = error_msg
        log.error("asgi.init_error", error=error_msg)
        raise

    def run_scheduler() -> None:
        """Run scheduler in background thread (blocking)."""
        global _scheduler_started, _error_message
        try:
            _scheduler_started = True
            log.info("asgi.scheduler_thread_started")
            scheduler.start()
        except KeyboardInterrupt:
            log.info("asgi.scheduler_interrupted")
        except Exception as e:
            error_msg = f"Scheduler error: {e}"
            _error_message = error_msg
            log.error("asgi.scheduler_error", error=error_msg)

    _scheduler_thread = threading.Thread(target=run_scheduler, daemon=True)
    _scheduler_thread.start()

    await asyncio.sleep(0.1)
    _scheduler_ready = True

    log.info("asgi.startup_complete")

    yield

    log.info("asgi.shutdown", reason="SIGTERM or server stop")

    try:
        scheduler.shutdown(wait=True)
        log.info("asgi.scheduler_shutdown_complete")
    except Exception as e:
        log.warning("asgi.scheduler_shutdown_error", error=str(e))

    if _scheduler_thread and _scheduler_thread.is_alive():
        _scheduler_thread.join(timeout=5.0)
        if _scheduler_thread.is_alive():
            log.warning("asgi.scheduler_thread_timeout", timeout_seconds=5.0)

    log.info("asgi.shutdown_complete")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="cert-reconciler",
    description="Reconciles declared certificates against stored TLS credentials",
    version=__version__,
    lifespan=lifespan,
)


def _scheduler_alive() -> bool:
    return _scheduler_thread is not None and _scheduler_thread.is_alive()


@app.get("/health")
async def health() -> JSONResponse:
    """
    Kubernetes liveness probe.

    200 while the scheduler thread is alive and startup raised no error,
    503 otherwise.
    """
    if _error_message:
        log.warning("health.check_failed", error=_error_message)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": _error_message},
        )

    if not _scheduler_alive():
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "reason": "scheduler thread not running"},
        )

    return JSONResponse(
        status_code=200,
        content={"status": "healthy", "scheduler_running": True},
    )


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Kubernetes readiness probe.

    202 while starting, 503 after an error, 200 once the scheduler runs.
    """
    if not _scheduler_ready or not _scheduler_started:
        return JSONResponse(
            status_code=202,
            content={"status": "starting", "scheduler_started": _scheduler_started},
        )

    if _error_message:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "error": _error_message},
        )

    return JSONResponse(
        status_code=200,
        content={"status": "ready", "scheduler_running": _scheduler_alive()},
    )


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata for debugging and monitoring."""
    return {
        "name": "cert-reconciler",
        "version": __version__,
        "scheduler_running": _scheduler_alive(),
        "scheduler_started": _scheduler_started,
        "scheduler_ready": _scheduler_ready,
        "has_error": _error_message is not None,
    }


@app.post("/trigger")
async def trigger() -> JSONResponse:
    """
    Run one reconciliation batch now instead of waiting for the schedule.

    Runs in a worker thread to keep the event loop free.

    200 with the batch summary when every certificate reconciled,
    207 with per-certificate failures when some did not,
    500 if the batch itself failed, 503 before startup completes.
    """
    if _batch_fn is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "Reconciler not initialized"},
        )

    log.info("trigger.manual_start", source="REST")

    try:
        result = await asyncio.to_thread(_batch_fn)
    except Exception as e:
        log.error("trigger.exception", error=str(e))
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(e)},
        )

    if result.is_failure():
        failure = result.error()
        log.error("trigger.batch_failed", failure=str(failure))
        return JSONResponse(
            status_code=500,
            content={
                "status": "failed",
                "error_code": failure.code.value,
                "message": failure.message,
            },
        )

    report = result.value()
    log.info("trigger.completed", **report.summary())
    content: dict[str, Any] = {
        "status": "success" if report.ok else "partial",
        "summary": report.summary(),
        "outcomes": {key: outcome.value for key, outcome in report.outcomes.items()},
    }
    if not report.ok:
        content["failures"] = {
            key: {"error_code": f.code.value, "message": f.message}
            for key, f in report.failures.items()
        }
    return JSONResponse(status_code=200 if report.ok else 207, content=content)


if __name__ == "__main__":
    # For local testing: python -m uvicorn cert_reconciler.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "cert_reconciler.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
