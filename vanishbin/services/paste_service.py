from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from vanishbin.observability import get_correlation_id
from vanishbin.repositories.paste_repository import (
    CreationLogRepository,
    MetadataSnapshot,
    PasteRepository,
)
from vanishbin.services import redaction
from vanishbin.services.access_gate import AccessDecision, hash_password, verify_access
from vanishbin.services.errors import (
    InvalidPasteParameters,
    PasswordNotRequiredError,
    PasteUnauthorizedError,
    StorageFailure,
)
from vanishbin.services.lifecycle import LifecycleManager


logger = logging.getLogger(__name__)


DEFAULT_LANGUAGE = "plaintext"
MAX_CONTENT_BYTES = 100 * 1024  # 100 KiB


def _metadata_to_dto(metadata: MetadataSnapshot) -> dict[str, Any]:
    """Public view of a record's metadata. The digest itself never leaves."""
    return {
        "id": metadata.id,
        "language": metadata.language,
        "redacted": metadata.redacted,
        "created_at": metadata.created_at,
        "expires_at": metadata.expires_at,
        "password_present": metadata.password_present,
    }


@dataclass
class PasteService:
    """
    Application service coordinating paste-related use cases.

    Sits between the HTTP layer and the lifecycle manager: applies the two
    redaction stages, the password gate and content limits. Returns plain
    dict DTOs and raises ``PasteError`` subclasses for the caller to map.
    """

    lifecycle: LifecycleManager
    max_content_bytes: int = MAX_CONTENT_BYTES

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: str,
        language: Optional[str] = None,
        ttl_minutes: Any = None,
        redacted: bool = False,
        password: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create a new paste.

        - ``content`` size must be <= ``max_content_bytes`` (UTF-8 bytes)
        - ``redacted`` pastes are scrubbed before they are written
        - an empty password is treated as no password
        - unknown TTL values fall back to the default
        """
        encoded = content.encode("utf-8")
        if len(encoded) > self.max_content_bytes:
            logger.warning(
                "Content too large when creating paste",
                extra={
                    "event": "paste_create_invalid_parameters",
                    "correlation_id": get_correlation_id(),
                },
            )
            raise InvalidPasteParameters(
                f"content must be at most {self.max_content_bytes} bytes when UTF-8 encoded."
            )

        if redacted:
            content = redaction.apply_stage(content, stage="persistence")

        password_hash = hash_password(password) if password else None

        metadata = self.lifecycle.create(
            content=content,
            language=language or DEFAULT_LANGUAGE,
            ttl_minutes=ttl_minutes,
            redacted=bool(redacted),
            password_hash=password_hash,
        )
        return {"id": metadata.id, "expires_at": metadata.expires_at}

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------
    def read_raw(self, paste_id: str, *, password: Optional[str] = None) -> str:
        """
        Return the stored text of a live paste.

        Order: lazy expiry check, password gate, content load, then the
        presentation-stage redaction for pastes flagged as redacted.
        """
        metadata = self.lifecycle.load_live(paste_id)
        self._require_access(metadata, password)

        text = self.lifecycle.read_content(paste_id)
        if metadata.redacted:
            text = redaction.apply_stage(text, stage="presentation", paste_id=paste_id)

        logger.info(
            "Paste raw content served",
            extra={
                "event": "paste_access_success",
                "paste_id": paste_id,
                "correlation_id": get_correlation_id(),
            },
        )
        return text

    def read_metadata(self, paste_id: str) -> dict[str, Any]:
        metadata = self.lifecycle.load_live(paste_id)
        return _metadata_to_dto(metadata)

    def validate_password(self, paste_id: str, password: Optional[str]) -> bool:
        """
        Check a password without returning content.

        Raises ``PasswordNotRequiredError`` for ungated pastes and
        ``PasteUnauthorizedError`` for a missing or wrong password.
        """
        metadata = self.lifecycle.load_live(paste_id)
        decision = verify_access(password, metadata.password_hash)
        if decision is AccessDecision.NO_GATE_REQUIRED:
            raise PasswordNotRequiredError("This paste does not require a password.")
        if not decision.allowed:
            self._log_denied(paste_id)
            raise PasteUnauthorizedError("Incorrect password.")
        return True

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------
    def delete_paste(self, paste_id: str, *, password: Optional[str] = None) -> dict[str, Any]:
        """
        Delete a live paste on request.

        Gated pastes need their password. Deleting races safely with the
        sweep: whichever runs second finds nothing to remove.
        """
        metadata = self.lifecycle.load_live(paste_id)
        self._require_access(metadata, password)
        self.lifecycle.delete(paste_id, metadata=metadata)
        return {"id": paste_id, "deleted": True}

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------
    def stats(self) -> dict[str, int]:
        """
        Aggregate counts for the stats endpoint.

        ``total`` counts live records; ``daily`` and ``all_time`` come from
        the creation log and so include pastes that were since deleted.
        """
        today = datetime.combine(
            self.lifecycle.clock().astimezone(timezone.utc).date(),
            time.min,
            tzinfo=timezone.utc,
        )
        session = self.lifecycle.session_factory()
        try:
            creation_log = CreationLogRepository(session=session)
            counts = {
                "total": PasteRepository(session=session).count(),
                "daily": creation_log.count_since(today),
                "all_time": creation_log.count_all(),
            }
            session.commit()
            return counts
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "Failed to read paste stats",
                extra={
                    "event": "paste_stats_storage_error",
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise StorageFailure("Failed to read stats.") from exc
        finally:
            session.close()

    def _require_access(self, metadata: MetadataSnapshot, password: Optional[str]) -> None:
        decision = verify_access(password, metadata.password_hash)
        if not decision.allowed:
            self._log_denied(metadata.id)
            raise PasteUnauthorizedError("Unauthorized: password required.")

    def _log_denied(self, paste_id: str) -> None:
        logger.info(
            "Paste access denied",
            extra={
                "event": "paste_access_denied",
                "paste_id": paste_id,
                "correlation_id": get_correlation_id(),
            },
        )
