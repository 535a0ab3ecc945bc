from __future__ import annotations

import logging
import threading
from typing import Optional

from flask import Flask
from sqlalchemy import inspect

from vanishbin.db import get_engine
from vanishbin.observability import WORKER_CORRELATION_ID
from vanishbin.services.errors import StorageFailure
from vanishbin.services.lifecycle import LifecycleManager, SweepReport


logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 60.0

_worker_started = False
_worker_lock = threading.Lock()


def run_sweep_cycle(lifecycle: LifecycleManager) -> Optional[SweepReport]:
    """
    Run one sweep pass, skipping it while the schema is missing.

    Never raises: a failed pass is logged and the next interval tries again.
    """

    try:
        # If tables haven't been created yet (no migrations run), skip work
        # instead of spamming errors.
        inspector = inspect(get_engine())
        if not inspector.has_table("paste_metadata"):
            logger.info(
                "Expiry worker: 'paste_metadata' table not found; skipping cycle",
                extra={
                    "event": "expiry_worker_no_table",
                    "correlation_id": WORKER_CORRELATION_ID,
                },
            )
            return None

        report = lifecycle.sweep()
        if report.expired or report.orphaned or report.failed:
            logger.info(
                f"Expiry worker: examined={report.examined} expired={report.expired} "
                f"orphaned={report.orphaned} failed={report.failed}",
                extra={
                    "event": "expiry_worker_cycle",
                    "correlation_id": WORKER_CORRELATION_ID,
                },
            )
        return report
    except StorageFailure:
        logger.warning(
            "Expiry worker: storage unavailable; skipping cycle",
            exc_info=True,
            extra={
                "event": "expiry_worker_storage_error",
                "correlation_id": WORKER_CORRELATION_ID,
            },
        )
    except Exception:  # pragma: no cover - keeps the thread alive
        logger.exception(
            "Error in expiry worker loop",
            extra={
                "event": "expiry_worker_error",
                "correlation_id": WORKER_CORRELATION_ID,
            },
        )
    return None


def _expiry_loop(app: Flask, lifecycle: LifecycleManager, stop: threading.Event) -> None:
    """Background loop that periodically sweeps expired and orphaned pastes."""

    interval = float(app.config.get("SWEEP_INTERVAL_SECONDS", POLL_INTERVAL_SECONDS))
    with app.app_context():
        while not stop.is_set():
            run_sweep_cycle(lifecycle)
            stop.wait(interval)


def start_expiry_worker(app: Flask, lifecycle: LifecycleManager) -> Optional[threading.Event]:
    """
    Start the expiry worker in a background thread.

    This function is idempotent and will only start a single worker thread.
    Returns the event that stops the loop, or ``None`` if already running.
    """

    global _worker_started
    with _worker_lock:
        if _worker_started:
            return None

        stop = threading.Event()
        thread = threading.Thread(
            target=_expiry_loop,
            args=(app, lifecycle, stop),
            name="expiry-worker",
            daemon=True,
        )
        thread.start()
        _worker_started = True
        return stop
