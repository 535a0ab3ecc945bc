from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from vanishbin.repositories.paste_repository import PasteRepository
from vanishbin.services.errors import (
    InvalidPasteParameters,
    PasswordNotRequiredError,
    PasteExpiredError,
    PasteNotFoundError,
    PasteUnauthorizedError,
)
from vanishbin.services.paste_service import PasteService
from vanishbin.services.redaction import REDACTION_PLACEHOLDER


# ---------------------------------------------------------------------------
# Creation and metadata.
# ---------------------------------------------------------------------------


def test_metadata_matches_creation_parameters(paste_service: PasteService) -> None:
    created = paste_service.create_paste(content="print(1)", language="python", ttl_minutes=10, redacted=True)

    meta = paste_service.read_metadata(created["id"])

    assert meta["language"] == "python"
    assert meta["redacted"] is True
    assert meta["password_present"] is False
    assert meta["expires_at"] == created["expires_at"]
    assert "password_hash" not in meta


def test_language_defaults_to_plaintext(paste_service: PasteService) -> None:
    created = paste_service.create_paste(content="x")
    assert paste_service.read_metadata(created["id"])["language"] == "plaintext"


def test_oversized_content_is_rejected(lifecycle) -> None:
    service = PasteService(lifecycle=lifecycle, max_content_bytes=8)

    with pytest.raises(InvalidPasteParameters):
        service.create_paste(content="ü" * 5)


def test_plaintext_password_is_never_stored(paste_service: PasteService, session_factory: sessionmaker) -> None:
    created = paste_service.create_paste(content="gated", password="s3cret")

    with session_factory() as session:
        metadata = PasteRepository(session=session).get_metadata(created["id"])
    assert metadata is not None
    assert metadata.password_hash is not None
    assert metadata.password_hash != "s3cret"


def test_empty_password_means_no_gate(paste_service: PasteService) -> None:
    created = paste_service.create_paste(content="open", password="")
    assert paste_service.read_raw(created["id"]) == "open"


# ---------------------------------------------------------------------------
# End-to-end: redacted paste with a one minute TTL.
# ---------------------------------------------------------------------------


def test_redacted_paste_lifecycle(paste_service: PasteService, session_factory: sessionmaker, clock) -> None:
    created = paste_service.create_paste(
        content="deploy with token=abcdefghij1234567890 please",
        language="bash",
        ttl_minutes=1,
        redacted=True,
    )
    paste_id = created["id"]

    with session_factory() as session:
        stored = PasteRepository(session=session).get_content(paste_id)
    assert stored == f"deploy with {REDACTION_PLACEHOLDER} please"

    assert paste_service.read_raw(paste_id) == f"deploy with {REDACTION_PLACEHOLDER} please"

    clock.advance(seconds=61)

    with pytest.raises(PasteExpiredError):
        paste_service.read_raw(paste_id)
    with session_factory() as session:
        assert PasteRepository(session=session).exists(paste_id) == (False, False)


def test_read_time_redaction_covers_unscrubbed_content(
    paste_service: PasteService,
    session_factory: sessionmaker,
    clock,
) -> None:
    now = clock()
    with session_factory() as session:
        PasteRepository(session=session).put(
            "legacy1",
            "host 192.168.0.7",
            language="plaintext",
            redacted=True,
            password_hash=None,
            created_at=now,
            expires_at=now.replace(hour=now.hour + 1),
        )
        session.commit()

    assert paste_service.read_raw("legacy1") == f"host {REDACTION_PLACEHOLDER}"


def test_unredacted_paste_is_served_verbatim(paste_service: PasteService) -> None:
    created = paste_service.create_paste(content="server 10.1.1.1")
    assert paste_service.read_raw(created["id"]) == "server 10.1.1.1"


# ---------------------------------------------------------------------------
# End-to-end: password-gated paste.
# ---------------------------------------------------------------------------


def test_password_gated_paste(paste_service: PasteService) -> None:
    created = paste_service.create_paste(content="launch codes", password="opensesame")
    paste_id = created["id"]

    with pytest.raises(PasteUnauthorizedError):
        paste_service.read_raw(paste_id)
    with pytest.raises(PasteUnauthorizedError):
        paste_service.read_raw(paste_id, password="wrong")

    assert paste_service.validate_password(paste_id, "opensesame") is True
    assert paste_service.read_raw(paste_id, password="opensesame") == "launch codes"
    assert paste_service.read_metadata(paste_id)["password_present"] is True


def test_validate_password_outcomes(paste_service: PasteService) -> None:
    gated = paste_service.create_paste(content="a", password="pw")
    open_paste = paste_service.create_paste(content="b")

    with pytest.raises(PasteUnauthorizedError):
        paste_service.validate_password(gated["id"], "nope")
    with pytest.raises(PasteUnauthorizedError):
        paste_service.validate_password(gated["id"], None)
    with pytest.raises(PasswordNotRequiredError):
        paste_service.validate_password(open_paste["id"], "pw")
    with pytest.raises(PasteNotFoundError):
        paste_service.validate_password("unknown", "pw")


# ---------------------------------------------------------------------------
# Expiry and deletion through the service.
# ---------------------------------------------------------------------------


def test_expired_then_not_found(paste_service: PasteService, clock) -> None:
    created = paste_service.create_paste(content="short lived", ttl_minutes=5)
    clock.advance(minutes=5)

    with pytest.raises(PasteExpiredError):
        paste_service.read_metadata(created["id"])
    with pytest.raises(PasteNotFoundError):
        paste_service.read_metadata(created["id"])


def test_delete_requires_password_for_gated_paste(paste_service: PasteService, notifier) -> None:
    created = paste_service.create_paste(content="x", password="pw")

    with pytest.raises(PasteUnauthorizedError):
        paste_service.delete_paste(created["id"])

    assert paste_service.delete_paste(created["id"], password="pw") == {"id": created["id"], "deleted": True}
    with pytest.raises(PasteNotFoundError):
        paste_service.read_raw(created["id"], password="pw")
    assert [e.paste_id for e in notifier.of_type("deleted")] == [created["id"]]


# ---------------------------------------------------------------------------
# Statistics.
# ---------------------------------------------------------------------------


def test_stats_survive_deletion(paste_service: PasteService, clock) -> None:
    first = paste_service.create_paste(content="one", ttl_minutes=1)
    paste_service.create_paste(content="two", ttl_minutes=60)
    paste_service.lifecycle.delete(first["id"])

    counts = paste_service.stats()
    assert counts == {"total": 1, "daily": 2, "all_time": 2}

    clock.advance(days=1)
    assert paste_service.stats()["daily"] == 0
