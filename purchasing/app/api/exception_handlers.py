from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from purchasing.app.core.errors import ProcurementError, ValidationError

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": error, "detail": detail},
    )


def _describe(exc: RequestValidationError) -> str:
    # "body.supplier_id: Field required; body.lines.0.quantity: ..."
    parts = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        parts.append(f"{loc}: {e.get('msg', 'invalid')}" if loc else str(e.get("msg", "invalid")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProcurementError)
    async def procurement_error_handler(request: Request, exc: ProcurementError) -> JSONResponse:
        logger.warning(
            "%s %s rejected: %s (%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.detail,
        )
        return _error(exc.status_code, type(exc).__name__, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = _describe(exc)
        logger.warning("%s %s rejected: malformed request (%s)", request.method, request.url.path, detail)
        return _error(ValidationError.status_code, ValidationError.__name__, detail)
