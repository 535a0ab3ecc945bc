from __future__ import annotations

from http import HTTPStatus


class PasteError(Exception):
    """Base class for paste-related errors."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR


class InvalidPasteParameters(PasteError):
    """Raised when creating a paste with invalid parameters."""

    status = HTTPStatus.BAD_REQUEST


class PasteNotFoundError(PasteError):
    """Raised when a paste never existed (or is only half present)."""

    status = HTTPStatus.NOT_FOUND


class PasteExpiredError(PasteError):
    """Raised when a paste existed but its TTL has elapsed."""

    status = HTTPStatus.GONE


class PasteUnauthorizedError(PasteError):
    """Raised when a gated paste is accessed with a missing or wrong password."""

    status = HTTPStatus.UNAUTHORIZED


class PasswordNotRequiredError(PasteError):
    """Raised when validating a password for a paste that has no gate."""

    status = HTTPStatus.BAD_REQUEST


class StorageFailure(PasteError):
    """Raised when the record store fails to read, write or delete."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR
