from __future__ import annotations

import enum
import logging
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vanishbin.domain.record_state import RecordState, classify_record, is_expired
from vanishbin.domain.ttl import compute_expiry, resolve_ttl_minutes
from vanishbin.observability import WORKER_CORRELATION_ID, get_correlation_id
from vanishbin.repositories.paste_repository import (
    CreationLogRepository,
    IdCollision,
    MetadataSnapshot,
    PasteRepository,
)
from vanishbin.services.errors import (
    PasteError,
    PasteExpiredError,
    PasteNotFoundError,
    StorageFailure,
)
from vanishbin.services.notifications import (
    EventNotifier,
    EventType,
    LoggingNotifier,
    PasteEvent,
)


logger = logging.getLogger(__name__)

ID_ALPHABET = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SweepOutcome(str, enum.Enum):
    EXPIRED = "EXPIRED"
    ORPHANED = "ORPHANED"
    KEPT = "KEPT"
    SKIPPED = "SKIPPED"


@dataclass
class SweepReport:
    examined: int = 0
    expired: int = 0
    orphaned: int = 0
    failed: int = 0

    def record(self, outcome: SweepOutcome) -> None:
        if outcome is SweepOutcome.EXPIRED:
            self.expired += 1
        elif outcome is SweepOutcome.ORPHANED:
            self.orphaned += 1


@dataclass
class LifecycleManager:
    """
    Owns creation, expiry and orphan reconciliation of paste records.

    Every operation opens its own session, commits on success, rolls back on
    error and closes the session. Deletion is idempotent so the lazy expiry
    check and the background sweep can race on the same id; only the caller
    that actually removed rows emits the event.
    """

    session_factory: Callable[[], Session]
    notifier: EventNotifier = field(default_factory=LoggingNotifier)
    clock: Callable[[], datetime] = utc_now
    id_length: int = 8
    max_id_attempts: int = 5
    token_factory: Optional[Callable[[int], str]] = None

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def generate_id(self) -> str:
        if self.token_factory is not None:
            return self.token_factory(self.id_length)
        return "".join(secrets.choice(ID_ALPHABET) for _ in range(self.id_length))

    def create(
        self,
        *,
        content: str,
        language: str,
        ttl_minutes: Any,
        redacted: bool,
        password_hash: Optional[str],
    ) -> MetadataSnapshot:
        """
        Persist a new record under a fresh id.

        Candidate ids are checked for existence before writing; a clash
        (including one caught by the primary key at flush time) is retried
        with a new token until ``max_id_attempts`` is exhausted.
        """

        ttl = resolve_ttl_minutes(ttl_minutes)

        for attempt in range(1, self.max_id_attempts + 1):
            paste_id = self.generate_id()
            session = self.session_factory()
            try:
                paste_repo = PasteRepository(session=session)
                has_metadata, has_content = paste_repo.exists(paste_id)
                if has_metadata or has_content:
                    raise IdCollision(f"Paste id {paste_id} is already in use.")

                created_at = self.clock()
                snapshot = paste_repo.put(
                    paste_id,
                    content,
                    language=language,
                    redacted=redacted,
                    password_hash=password_hash,
                    created_at=created_at,
                    expires_at=compute_expiry(created_at, ttl),
                )
                CreationLogRepository(session=session).append(
                    paste_id=paste_id,
                    created_at=created_at,
                )
                session.commit()
            except IdCollision:
                session.rollback()
                logger.warning(
                    "Paste id collision; retrying",
                    extra={
                        "event": "paste_id_collision",
                        "paste_id": paste_id,
                        "correlation_id": get_correlation_id(),
                    },
                )
                continue
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception(
                    "Failed to save paste",
                    extra={
                        "event": "paste_create_storage_error",
                        "paste_id": paste_id,
                        "error_type": type(exc).__name__,
                        "correlation_id": get_correlation_id(),
                    },
                )
                raise StorageFailure("Failed to save paste.") from exc
            finally:
                session.close()

            logger.info(
                "Paste created",
                extra={
                    "event": "paste_created",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
            self._emit(
                PasteEvent(
                    event_type=EventType.CREATED,
                    paste_id=paste_id,
                    language=snapshot.language,
                    expires_at=snapshot.expires_at,
                    extra={
                        "redacted": snapshot.redacted,
                        "passwordPresent": snapshot.password_present,
                    },
                )
            )
            return snapshot

        raise StorageFailure(
            f"Could not allocate a unique paste id after {self.max_id_attempts} attempts."
        )

    # -------------------------------------------------------------------------
    # Lazy expiry
    # -------------------------------------------------------------------------
    def load_live(self, paste_id: str) -> MetadataSnapshot:
        """
        Return the metadata of a complete, unexpired record.

        Absent and half-present records raise ``PasteNotFoundError``. An
        expired record is deleted on the spot and ``PasteExpiredError`` is
        raised whether or not the sweep has reached it yet.
        """

        removed = False
        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)
            has_metadata, has_content = paste_repo.exists(paste_id)
            state = classify_record(has_metadata=has_metadata, has_content=has_content)
            if state is not RecordState.COMPLETE:
                raise PasteNotFoundError(f"Paste {paste_id} not found.")

            metadata = paste_repo.get_metadata(paste_id)
            if metadata is None:
                raise PasteNotFoundError(f"Paste {paste_id} not found.")

            if not is_expired(metadata.expires_at, self.clock()):
                session.commit()
                return metadata

            removed = paste_repo.delete(paste_id)
            session.commit()
        except PasteError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Failed to load paste",
                extra={
                    "event": "paste_load_storage_error",
                    "paste_id": paste_id,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageFailure("Failed to read paste.") from exc
        finally:
            session.close()

        if not removed:
            # Another path deleted it between our read and delete.
            logger.info(
                "Expired paste already removed",
                extra={
                    "event": "paste_lazy_expired_noop",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
        else:
            logger.info(
                "Paste expired on access",
                extra={
                    "event": "paste_lazy_expired",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
            self._emit(
                PasteEvent(
                    event_type=EventType.EXPIRED,
                    paste_id=paste_id,
                    language=metadata.language,
                    expires_at=metadata.expires_at,
                )
            )
        raise PasteExpiredError(f"Paste {paste_id} has expired.")

    def read_content(self, paste_id: str) -> str:
        session = self.session_factory()
        try:
            content = PasteRepository(session=session).get_content(paste_id)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Failed to read paste content",
                extra={
                    "event": "paste_load_storage_error",
                    "paste_id": paste_id,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageFailure("Failed to read paste.") from exc
        finally:
            session.close()

        if content is None:
            # Deleted between the expiry check and this read.
            raise PasteNotFoundError(f"Paste {paste_id} not found.")
        return content

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------
    def delete(self, paste_id: str, *, metadata: Optional[MetadataSnapshot] = None) -> bool:
        """
        Remove a record. Returns ``False`` if it was already gone.

        A ``deleted`` event is emitted only when this call removed rows.
        """

        session = self.session_factory()
        try:
            removed = PasteRepository(session=session).delete(paste_id)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Failed to delete paste",
                extra={
                    "event": "paste_delete_storage_error",
                    "paste_id": paste_id,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageFailure("Failed to delete paste.") from exc
        finally:
            session.close()

        if removed:
            self._emit(
                PasteEvent(
                    event_type=EventType.DELETED,
                    paste_id=paste_id,
                    language=metadata.language if metadata else None,
                    expires_at=metadata.expires_at if metadata else None,
                )
            )
        return removed

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------
    def sweep(self) -> SweepReport:
        """
        One pass over every known id.

        Orphans lose their surviving half, expired records are deleted, live
        records are left alone. A storage failure on one id is logged and
        the pass moves on to the next.
        """

        now = self.clock()
        report = SweepReport()

        session = self.session_factory()
        try:
            paste_ids = PasteRepository(session=session).list_ids()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageFailure("Failed to enumerate pastes.") from exc
        finally:
            session.close()

        for paste_id in paste_ids:
            report.examined += 1
            try:
                outcome = self._reconcile(paste_id, now)
            except StorageFailure:
                report.failed += 1
                continue
            report.record(outcome)

        logger.info(
            "Sweep finished",
            extra={
                "event": "paste_sweep_finished",
                "correlation_id": WORKER_CORRELATION_ID,
            },
        )
        return report

    def _reconcile(self, paste_id: str, now: datetime) -> SweepOutcome:
        event: Optional[PasteEvent] = None
        state: Optional[RecordState] = None
        outcome = SweepOutcome.KEPT

        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)
            has_metadata, has_content = paste_repo.exists(paste_id)
            state = classify_record(has_metadata=has_metadata, has_content=has_content)

            if state is RecordState.ABSENT:
                outcome = SweepOutcome.SKIPPED
            elif state is RecordState.ORPHANED_METADATA:
                metadata = paste_repo.get_metadata(paste_id)
                # Nothing to remove on the content side.
                if paste_repo.delete_metadata(paste_id):
                    outcome = SweepOutcome.ORPHANED
                    event = PasteEvent(
                        event_type=EventType.ORPHANED,
                        paste_id=paste_id,
                        language=metadata.language if metadata else None,
                        expires_at=metadata.expires_at if metadata else None,
                    )
            elif state is RecordState.ORPHANED_CONTENT:
                if paste_repo.delete_content(paste_id):
                    outcome = SweepOutcome.ORPHANED
                    event = PasteEvent(event_type=EventType.ORPHANED, paste_id=paste_id)
            else:
                metadata = paste_repo.get_metadata(paste_id)
                if metadata is not None and is_expired(metadata.expires_at, now):
                    if paste_repo.delete(paste_id):
                        outcome = SweepOutcome.EXPIRED
                        event = PasteEvent(
                            event_type=EventType.EXPIRED,
                            paste_id=paste_id,
                            language=metadata.language,
                            expires_at=metadata.expires_at,
                        )
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Sweep failed to reconcile paste",
                extra={
                    "event": "paste_sweep_error",
                    "paste_id": paste_id,
                    "record_state": state.value if state else None,
                    "error_type": type(exc).__name__,
                    "correlation_id": WORKER_CORRELATION_ID,
                },
            )
            raise StorageFailure(f"Failed to reconcile paste {paste_id}.") from exc
        finally:
            session.close()

        if event is not None:
            logger.info(
                "Sweep removed paste",
                extra={
                    "event": f"paste_sweep_{outcome.value.lower()}",
                    "paste_id": paste_id,
                    "record_state": state.value if state else None,
                    "correlation_id": WORKER_CORRELATION_ID,
                },
            )
            self._emit(event)
        return outcome

    def _emit(self, event: PasteEvent) -> None:
        try:
            self.notifier.notify(event)
        except Exception:
            # Delivery is best effort and must not affect the lifecycle outcome.
            logger.exception(
                "Event notification failed",
                extra={
                    "event": "paste_notification_error",
                    "event_type": event.event_type.value,
                    "paste_id": event.paste_id,
                },
            )
