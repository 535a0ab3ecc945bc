from __future__ import annotations

import enum
from datetime import datetime, timezone


class RecordState(str, enum.Enum):
    COMPLETE = "COMPLETE"
    ORPHANED_METADATA = "ORPHANED_METADATA"
    ORPHANED_CONTENT = "ORPHANED_CONTENT"
    ABSENT = "ABSENT"


def classify_record(*, has_metadata: bool, has_content: bool) -> RecordState:
    """
    Classify a record from the presence of its two sub-objects.

    - both present: ``COMPLETE``
    - metadata only: ``ORPHANED_METADATA``
    - content only: ``ORPHANED_CONTENT``
    - neither: ``ABSENT``
    """

    if has_metadata and has_content:
        return RecordState.COMPLETE
    if has_metadata:
        return RecordState.ORPHANED_METADATA
    if has_content:
        return RecordState.ORPHANED_CONTENT
    return RecordState.ABSENT


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round trip)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """A record is expired once ``now >= expires_at``."""
    return as_utc(now) >= as_utc(expires_at)
