"""
Exception handlers - Map domain errors to HTTP responses.

Gate outcomes never reach these handlers; they come back as Deny verdicts.
Only malformed requests, issuance refusals, authorization failures and
infrastructure faults do. Infrastructure faults are logged in full and
answered with a generic 503 so operators see "service unavailable".
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domain.exceptions import (
    AuthorizationError,
    ClearanceError,
    ClearanceIncompleteError,
    NotFoundError,
    StateConflictError,
    UpstreamError,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[ClearanceError], int, str]] = [
    (ValidationFailed, status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid request"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Student not found"),
    (ClearanceIncompleteError, status.HTTP_409_CONFLICT, "Student is not cleared for a pass"),
    (StateConflictError, status.HTTP_409_CONFLICT, "Conflicting clearance state"),
    (AuthorizationError, status.HTTP_403_FORBIDDEN, "Not permitted"),
    (UpstreamError, status.HTTP_503_SERVICE_UNAVAILABLE, "Service unavailable"),
]


async def clearance_error_handler(request: Request, exc: ClearanceError) -> JSONResponse:
    for error_type, status_code, detail in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if error_type is ValidationFailed and exc.args:
                detail = str(exc.args[0])
            if status_code >= 500:
                logger.error("Upstream failure on %s: %s", request.url.path, exc)
            return JSONResponse(status_code=status_code, content={"detail": detail, "code": exc.code})

    logger.error("Unmapped clearance error on %s: %r", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal error", "code": exc.code},
    )


async def unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled failure on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service unavailable", "code": "service_unavailable"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClearanceError, clearance_error_handler)
    app.add_exception_handler(Exception, unavailable_handler)
