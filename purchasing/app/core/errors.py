"""
Domain errors raised by the purchasing services.

Services never raise HTTPException: the API layer maps these classes to
HTTP responses (see purchasing.app.api.exception_handlers).
"""

from __future__ import annotations


class ProcurementError(Exception):
    status_code: int = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ProcurementError):
    """Malformed or missing fields, non-positive quantity, GOOD line without warehouse."""

    status_code = 400


class NotFoundError(ProcurementError):
    status_code = 404


class InvalidStateError(ProcurementError):
    """Operation illegal for the order's current status."""

    status_code = 409


class QuantityExceededError(ProcurementError):
    """Requested return exceeds the remaining returnable quantity."""

    status_code = 409


class PermissionDeniedError(ProcurementError):
    status_code = 403


class StorageError(ProcurementError):
    """Transaction or commit failure. The whole operation must be retried."""

    status_code = 503
