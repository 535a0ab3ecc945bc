from __future__ import annotations

import os

from flask import Flask
from flask_cors import CORS

from .config import get_config
from .db import SessionLocal, init_db
from .observability import init_observability
from .api.pastes import api_bp
from .services.lifecycle import LifecycleManager
from .services.notifications import build_notifier
from .services.paste_service import PasteService
from .worker.expiry_worker import start_expiry_worker


def build_paste_service(app: Flask) -> PasteService:
    """Wire the lifecycle manager and access service from app config."""

    lifecycle = LifecycleManager(
        session_factory=SessionLocal,
        notifier=build_notifier(app.config),
        id_length=app.config["PASTE_ID_LENGTH"],
        max_id_attempts=app.config["PASTE_ID_MAX_ATTEMPTS"],
    )
    return PasteService(
        lifecycle=lifecycle,
        max_content_bytes=app.config["MAX_CONTENT_BYTES"],
    )


def create_app(env_name: str | None = None, *, start_worker: bool = True) -> Flask:
    """
    Application factory for the Flask backend.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``).
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)

    CORS(
        app
    )

    # Initialize infrastructure layers
    init_db(app)
    init_observability(app)

    paste_service = build_paste_service(app)
    app.extensions["paste_service"] = paste_service

    # Register API blueprints
    app.register_blueprint(api_bp)

    # Start background expiry worker (disabled in testing)
    if start_worker and not app.config.get("TESTING", False):
        start_expiry_worker(app, paste_service.lifecycle)

    return app
