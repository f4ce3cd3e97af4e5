from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for every failure the ledger reports to its callers.

    ``code`` is the machine readable kind, ``message`` is shown to users as-is.
    """

    code = "ledger_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """Missing or malformed input, rejected before anything is written."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(LedgerError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStock(LedgerError):
    """A sale line asks for more units than are on hand."""

    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, part_name: str, requested: int, available: int, *, part_id: int | None = None) -> None:
        super().__init__(
            f"Insufficient quantity for {part_name}. Available: {available}, Requested: {requested}",
            details={"part_id": part_id, "requested": requested, "available": available},
        )
        self.part_id = part_id
        self.requested = requested
        self.available = available


class TransactionFailure(LedgerError):
    """The database refused the commit; every write of the call was rolled back."""

    code = "transaction_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def ledger_exception_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(
            "ledger.failure",
            extra={"extra_data": {"code": exc.code, "path": request.url.path, "error": exc.message}},
        )
    return ErrorEnvelope(status_code=exc.status_code, code=exc.code, message=exc.message, details=exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.encoders import jsonable_encoder
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc
