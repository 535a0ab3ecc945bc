from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from vanishbin.db import Base


PASTE_ID_MAX_LENGTH = 32


class PasteContent(Base):
    """Content half of a paste record, co-addressed with its metadata by ``id``."""

    __tablename__ = "paste_contents"

    id: Mapped[str] = mapped_column(String(PASTE_ID_MAX_LENGTH), primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    @validates("content")
    def _validate_immutable_content(self, key: str, value: str) -> str:
        """
        Enforce that ``content`` is immutable after initial creation.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error.
        """

        if getattr(self, "content", None) is not None and self.content != value:
            raise ValueError("Paste content is immutable and cannot be modified.")
        return value


class PasteMetadata(Base):
    """Metadata half of a paste record."""

    __tablename__ = "paste_metadata"
    __table_args__ = (
        CheckConstraint(
            "expires_at > created_at",
            name="ck_paste_metadata_expires_after_created",
        ),
    )

    id: Mapped[str] = mapped_column(String(PASTE_ID_MAX_LENGTH), primary_key=True)
    language: Mapped[str] = mapped_column(String(64), nullable=False, default="plaintext")
    redacted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )


class PasteCreationLog(Base):
    """
    Append-only log of paste creations backing the usage statistics.

    Rows are never removed when the paste itself is deleted.
    """

    __tablename__ = "paste_creation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paste_id: Mapped[str] = mapped_column(String(PASTE_ID_MAX_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
