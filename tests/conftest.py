from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from vanishbin.db import Base, build_engine
from vanishbin.domain import models as _models  # noqa: F401
from vanishbin.services.lifecycle import LifecycleManager
from vanishbin.services.notifications import PasteEvent
from vanishbin.services.paste_service import PasteService


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[PasteEvent] = []

    def notify(self, event: PasteEvent) -> None:
        self.events.append(event)

    def of_type(self, value: str) -> list[PasteEvent]:
        return [e for e in self.events if e.event_type.value == value]


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory SQLite engine for each test function.

    This keeps tests focused on lifecycle behavior while using a real database
    session for repository/service operations.
    """

    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def lifecycle(session_factory: sessionmaker, clock: FakeClock, notifier: RecordingNotifier) -> LifecycleManager:
    return LifecycleManager(
        session_factory=session_factory,
        notifier=notifier,
        clock=clock,
        id_length=6,
    )


@pytest.fixture
def paste_service(lifecycle: LifecycleManager) -> PasteService:
    return PasteService(lifecycle=lifecycle)
