from __future__ import annotations

from http import HTTPStatus
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from vanishbin import create_app
from vanishbin.services.errors import StorageFailure

from tests.conftest import FakeClock, RecordingNotifier


@pytest.fixture
def app(clock: FakeClock, notifier: RecordingNotifier) -> Generator[Flask, None, None]:
    app = create_app("testing")
    lifecycle = app.extensions["paste_service"].lifecycle
    lifecycle.clock = clock
    lifecycle.notifier = notifier
    yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


def _create(client: FlaskClient, **body) -> str:
    body.setdefault("content", "hello world")
    response = client.post("/documents", json=body)
    assert response.status_code == HTTPStatus.OK
    return response.get_json()["id"]


def test_health(client: FlaskClient) -> None:
    response = client.get("/health")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"status": "ok"}


def test_create_and_read_back(client: FlaskClient) -> None:
    paste_id = _create(client, content="print('hi')", language="python", expiry="30")

    raw = client.get(f"/raw/{paste_id}")
    assert raw.status_code == HTTPStatus.OK
    assert raw.mimetype == "text/plain"
    assert raw.get_data(as_text=True) == "print('hi')"

    meta = client.get(f"/meta/{paste_id}")
    assert meta.status_code == HTTPStatus.OK
    body = meta.get_json()
    assert body["language"] == "python"
    assert body["redacted"] is False
    assert body["passwordPresent"] is False
    assert set(body) == {"language", "redacted", "createdAt", "expiresAt", "passwordPresent"}


def test_create_response_has_id_and_expiry(client: FlaskClient) -> None:
    response = client.post("/documents", json={"content": "x", "ttlMinutes": 1})
    body = response.get_json()
    assert set(body) == {"id", "expiresAt"}
    assert body["expiresAt"].startswith("2026-10-19T12:01:00")


def test_non_ascii_digit_expiry_uses_default(client: FlaskClient) -> None:
    response = client.post("/documents", json={"content": "x", "expiry": "²"})
    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["expiresAt"].startswith("2026-10-19T13:00:00")


def test_invalid_body_is_rejected(client: FlaskClient) -> None:
    response = client.post("/documents", json={"language": "python"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"] == "Invalid request body"


def test_unknown_id_is_404(client: FlaskClient) -> None:
    assert client.get("/raw/nothere").status_code == HTTPStatus.NOT_FOUND
    assert client.get("/meta/nothere").status_code == HTTPStatus.NOT_FOUND
    assert client.post("/validate-password/nothere", json={"password": "x"}).status_code == HTTPStatus.NOT_FOUND


def test_expired_is_410_then_404(client: FlaskClient, clock: FakeClock, notifier: RecordingNotifier) -> None:
    paste_id = _create(client, expiry=1)
    clock.advance(seconds=61)

    assert client.get(f"/raw/{paste_id}").status_code == HTTPStatus.GONE
    assert client.get(f"/meta/{paste_id}").status_code == HTTPStatus.NOT_FOUND
    assert [e.paste_id for e in notifier.of_type("expired")] == [paste_id]


def test_redacted_paste_served_with_placeholder(client: FlaskClient) -> None:
    paste_id = _create(client, content="auth token=abcdefghij1234567890", redacted=True)

    raw = client.get(f"/raw/{paste_id}").get_data(as_text=True)
    assert raw == "auth [REDACTED]"
    assert client.get(f"/meta/{paste_id}").get_json()["redacted"] is True


def test_password_flow(client: FlaskClient) -> None:
    paste_id = _create(client, content="secret stuff", password="letmein")

    assert client.get(f"/raw/{paste_id}").status_code == HTTPStatus.UNAUTHORIZED
    assert client.post(f"/raw/{paste_id}", json={"password": "nope"}).status_code == HTTPStatus.UNAUTHORIZED

    wrong = client.post(f"/validate-password/{paste_id}", json={"password": "nope"})
    assert wrong.status_code == HTTPStatus.UNAUTHORIZED

    ok = client.post(f"/validate-password/{paste_id}", json={"password": "letmein"})
    assert ok.status_code == HTTPStatus.OK
    assert ok.get_json() == {"success": True}

    raw = client.post(f"/raw/{paste_id}", json={"password": "letmein"})
    assert raw.status_code == HTTPStatus.OK
    assert raw.get_data(as_text=True) == "secret stuff"

    assert client.get(f"/meta/{paste_id}").get_json()["passwordPresent"] is True


def test_validate_password_without_gate_is_400(client: FlaskClient) -> None:
    paste_id = _create(client)
    response = client.post(f"/validate-password/{paste_id}", json={"password": "x"})
    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_delete_paste(client: FlaskClient) -> None:
    paste_id = _create(client, password="pw")

    assert client.delete(f"/documents/{paste_id}").status_code == HTTPStatus.UNAUTHORIZED

    response = client.delete(f"/documents/{paste_id}", json={"password": "pw"})
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"id": paste_id, "deleted": True}
    assert client.delete(f"/documents/{paste_id}", json={"password": "pw"}).status_code == HTTPStatus.NOT_FOUND


def test_stats(client: FlaskClient) -> None:
    _create(client)
    _create(client)

    response = client.get("/stats")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"totalPastes": 2, "dailyPastes": 2, "allTimePastes": 2}


def test_storage_failure_hides_details(app: Flask, client: FlaskClient, monkeypatch: pytest.MonkeyPatch) -> None:
    lifecycle = app.extensions["paste_service"].lifecycle

    def _broken(**_kwargs):
        raise StorageFailure("could not write /var/lib/db/paste_contents")

    monkeypatch.setattr(lifecycle, "create", _broken)

    response = client.post("/documents", json={"content": "x"})
    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.get_json() == {"error": "Storage failure"}


def test_correlation_id_is_echoed(client: FlaskClient) -> None:
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"
