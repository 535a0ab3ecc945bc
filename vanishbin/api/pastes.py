from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, Response, current_app, request
from pydantic import ValidationError

from vanishbin.api.schemas import (
    HealthResponse,
    PasswordRequest,
    PasteCreateRequest,
    PasteCreateResponse,
    PasteMetadataResponse,
    StatsResponse,
)
from vanishbin.observability import get_correlation_id
from vanishbin.services.errors import PasteError, StorageFailure
from vanishbin.services.paste_service import PasteService


logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def _paste_service() -> PasteService:
    return current_app.extensions["paste_service"]


def _password_from_body() -> str | None:
    data = request.get_json(silent=True) or {}
    try:
        return PasswordRequest.model_validate(data).password
    except ValidationError:
        return None


@api_bp.errorhandler(PasteError)
def _handle_paste_error(exc: PasteError) -> tuple[dict, int]:
    if isinstance(exc, StorageFailure):
        # Storage detail stays in the logs.
        return {"error": "Storage failure"}, exc.status
    return {"error": str(exc)}, exc.status


@api_bp.route("/health", methods=["GET"])
def health() -> tuple[dict, int]:
    """Simple health check endpoint."""

    body = HealthResponse().model_dump()
    return body, HTTPStatus.OK


@api_bp.route("/documents", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Validation is handled by Pydantic; business rules by the service layer.
    """
    try:
        payload = PasteCreateRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        logger.info(
            "Rejected paste body",
            extra={
                "event": "paste_create_invalid_body",
                "correlation_id": get_correlation_id(),
            },
        )
        return {"error": "Invalid request body", "details": str(exc)}, HTTPStatus.BAD_REQUEST

    dto = _paste_service().create_paste(
        content=payload.content,
        language=payload.language,
        ttl_minutes=payload.ttl_minutes,
        redacted=payload.redacted,
        password=payload.password,
    )
    body = PasteCreateResponse.model_validate(dto).model_dump(by_alias=True, mode="json")
    return body, HTTPStatus.OK


@api_bp.route("/raw/<paste_id>", methods=["GET", "POST"])
def read_raw(paste_id: str) -> Response:
    """Raw text of a paste; gated pastes take the password in a POST body."""

    password = _password_from_body() if request.method == "POST" else None
    text = _paste_service().read_raw(paste_id, password=password)
    return Response(text, status=HTTPStatus.OK, mimetype="text/plain")


@api_bp.route("/meta/<paste_id>", methods=["GET"])
def read_metadata(paste_id: str) -> tuple[dict, int]:
    dto = _paste_service().read_metadata(paste_id)
    body = PasteMetadataResponse.model_validate(dto).model_dump(by_alias=True, mode="json")
    return body, HTTPStatus.OK


@api_bp.route("/validate-password/<paste_id>", methods=["POST"])
def validate_password(paste_id: str) -> tuple[dict, int]:
    _paste_service().validate_password(paste_id, _password_from_body())
    return {"success": True}, HTTPStatus.OK


@api_bp.route("/documents/<paste_id>", methods=["DELETE"])
def delete_paste(paste_id: str) -> tuple[dict, int]:
    """
    Delete a paste before it expires.

    Pastes with a password require it in the JSON body.
    """
    dto = _paste_service().delete_paste(paste_id, password=_password_from_body())
    return dto, HTTPStatus.OK


@api_bp.route("/stats", methods=["GET"])
def stats() -> tuple[dict, int]:
    counts = _paste_service().stats()
    body = StatsResponse.model_validate(counts).model_dump(by_alias=True)
    return body, HTTPStatus.OK
