from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Delete, Select, delete, func, select, union
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vanishbin.domain.models import PasteContent, PasteCreationLog, PasteMetadata
from vanishbin.domain.record_state import as_utc
from vanishbin.observability import get_correlation_id


logger = logging.getLogger(__name__)


class IdCollision(Exception):
    """Raised when a paste id is already taken."""


@dataclass(frozen=True)
class MetadataSnapshot:
    """Detached copy of a metadata row, safe to use after the session closes."""

    id: str
    language: str
    redacted: bool
    password_hash: Optional[str]
    created_at: datetime
    expires_at: datetime

    @property
    def password_present(self) -> bool:
        return self.password_hash is not None

    @classmethod
    def from_row(cls, row: PasteMetadata) -> "MetadataSnapshot":
        return cls(
            id=row.id,
            language=row.language,
            redacted=row.redacted,
            password_hash=row.password_hash,
            created_at=as_utc(row.created_at),
            expires_at=as_utc(row.expires_at),
        )


class PasteRepository:
    """
    Record store for pastes.

    Content and metadata are two rows in separate tables addressed by the
    same id. All database interaction for paste records goes through this
    class; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def put(
        self,
        paste_id: str,
        content: str,
        *,
        language: str,
        redacted: bool,
        password_hash: Optional[str],
        created_at: datetime,
        expires_at: datetime,
    ) -> MetadataSnapshot:
        """
        Write both halves of a record.

        Content is flushed before metadata so a partial failure never leaves
        metadata pointing at nothing. Raises ``IdCollision`` if either half
        already exists under ``paste_id``; the caller must then roll back.
        """

        metadata = PasteMetadata(
            id=paste_id,
            language=language,
            redacted=redacted,
            password_hash=password_hash,
            created_at=created_at,
            expires_at=expires_at,
        )
        try:
            self._session.add(PasteContent(id=paste_id, content=content))
            self._session.flush()
            self._session.add(metadata)
            self._session.flush()
        except IntegrityError as exc:
            raise IdCollision(f"Paste id {paste_id} is already in use.") from exc

        return MetadataSnapshot.from_row(metadata)

    def get_metadata(self, paste_id: str) -> Optional[MetadataSnapshot]:
        """Return the metadata for ``paste_id``, or ``None`` if not found."""

        stmt: Select[tuple[PasteMetadata]] = select(PasteMetadata).where(
            PasteMetadata.id == paste_id
        )
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            return None
        return MetadataSnapshot.from_row(row)

    def get_content(self, paste_id: str) -> Optional[str]:
        """Return the content for ``paste_id``, or ``None`` if not found."""

        stmt = select(PasteContent.content).where(PasteContent.id == paste_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def exists(self, paste_id: str) -> tuple[bool, bool]:
        """Return ``(has_metadata, has_content)`` for ``paste_id``."""

        has_metadata = self._session.execute(
            select(PasteMetadata.id).where(PasteMetadata.id == paste_id)
        ).first() is not None
        has_content = self._session.execute(
            select(PasteContent.id).where(PasteContent.id == paste_id)
        ).first() is not None
        return has_metadata, has_content

    def delete_metadata(self, paste_id: str) -> bool:
        stmt: Delete = delete(PasteMetadata).where(PasteMetadata.id == paste_id)
        return self._session.execute(stmt).rowcount > 0

    def delete_content(self, paste_id: str) -> bool:
        stmt: Delete = delete(PasteContent).where(PasteContent.id == paste_id)
        return self._session.execute(stmt).rowcount > 0

    def delete(self, paste_id: str) -> bool:
        """
        Remove both halves of a record.

        Missing halves are not an error. Returns ``True`` if this call removed
        anything, ``False`` if the record was already gone.
        """

        removed_metadata = self.delete_metadata(paste_id)
        removed_content = self.delete_content(paste_id)
        removed = removed_metadata or removed_content

        logger.info(
            "Paste record deleted" if removed else "Paste record already gone",
            extra={
                "event": "paste_record_deleted" if removed else "paste_record_delete_noop",
                "paste_id": paste_id,
                "correlation_id": get_correlation_id(),
            },
        )

        # Caller is responsible for committing.
        return removed

    def list_ids(self) -> list[str]:
        """Return every id present in either table."""

        stmt = union(select(PasteMetadata.id), select(PasteContent.id))
        return sorted(self._session.execute(stmt).scalars().all())

    def count(self) -> int:
        """Number of records with metadata present."""

        stmt = select(func.count()).select_from(PasteMetadata)
        return int(self._session.execute(stmt).scalar_one())


class CreationLogRepository:
    """
    Repository for the append-only creation log.

    All database interaction for PasteCreationLog should go through this class.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(self, *, paste_id: str, created_at: datetime) -> PasteCreationLog:
        entry = PasteCreationLog(paste_id=paste_id, created_at=created_at)
        self._session.add(entry)
        self._session.flush()
        return entry

    def count_all(self) -> int:
        stmt = select(func.count()).select_from(PasteCreationLog)
        return int(self._session.execute(stmt).scalar_one())

    def count_since(self, moment: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(PasteCreationLog)
            .where(PasteCreationLog.created_at >= moment)
        )
        return int(self._session.execute(stmt).scalar_one())
