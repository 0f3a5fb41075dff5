"""Translate domain exceptions into HTTP responses"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from microledger.api.dependencies import get_request_id
from microledger.domain.exceptions import (
    ConflictError,
    DomainException,
    EntityNotFoundError,
    InvalidTransitionError,
    NoPendingInstallmentError,
    PermissionDeniedError,
    ValidationError,
)

# (exception, HTTP status, error kind reported to clients)
ERROR_MAP = [
    (EntityNotFoundError, 404, "NotFound"),
    (NoPendingInstallmentError, 404, "NoPendingInstallment"),
    (InvalidTransitionError, 400, "InvalidTransition"),
    (ConflictError, 409, "Conflict"),
    (ValidationError, 422, "ValidationError"),
    (PermissionDeniedError, 403, "PermissionDenied"),
]


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code, kind = 500, "InternalError"
    for exc_type, mapped_status, mapped_kind in ERROR_MAP:
        if isinstance(exc, exc_type):
            status_code, kind = mapped_status, mapped_kind
            break

    request_id = get_request_id(request)
    logging.warning(f"{kind}: {exc}", extra={"request_id": request_id, "path": request.url.path})
    return JSONResponse(
        status_code=status_code,
        content={"error": kind, "detail": str(exc), "request_id": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
