"""
Worker-related setup.

The expiry sweep normally runs as a thread inside the web process. A
dedicated worker process can use ``create_worker_app`` and ``main`` to run
the sweep loop in the foreground instead.
"""

from __future__ import annotations

import time

from flask import Flask


def create_worker_app() -> Flask:
    """
    Create a Flask application instance for a standalone sweep process.

    The in-process worker thread is left out; the caller drives the sweep.
    """
    from vanishbin import create_app  # local import to avoid circular dependency

    return create_app(start_worker=False)


def main() -> None:
    from vanishbin.worker.expiry_worker import run_sweep_cycle

    app = create_worker_app()
    lifecycle = app.extensions["paste_service"].lifecycle
    interval = float(app.config["SWEEP_INTERVAL_SECONDS"])
    with app.app_context():
        while True:
            run_sweep_cycle(lifecycle)
            time.sleep(interval)
