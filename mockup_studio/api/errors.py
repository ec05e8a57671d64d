from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mockup_studio.domain.exceptions import (
    AllGenerationsFailedError,
    AlreadyClaimedError,
    AlreadySentError,
    BillingConfigError,
    BillingError,
    BillingSignatureError,
    DomainError,
    EmailDeliveryError,
    EmailMismatchError,
    ForbiddenError,
    GenerationError,
    InsufficientCreditsError,
    NotFoundError,
    RateLimitedError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)


logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases.
_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (UnauthorizedError, 401),
    (ForbiddenError, 403),
    (InsufficientCreditsError, 403),
    (EmailMismatchError, 403),
    (NotFoundError, 404),
    (AlreadyClaimedError, 400),
    (AlreadySentError, 400),
    (RateLimitedError, 429),
    (ValidationError, 400),
    (AllGenerationsFailedError, 500),
    (BillingConfigError, 500),
    (BillingSignatureError, 400),
    (BillingError, 502),
    (GenerationError, 502),
    (StorageError, 502),
    (EmailDeliveryError, 502),
)


def status_for(exc: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def to_http_exception(exc: DomainError) -> HTTPException:
    status = status_for(exc)
    if isinstance(exc, AllGenerationsFailedError):
        detail: object = {
            "error": str(exc),
            "errors": [{"category": item.category, "message": item.message} for item in exc.errors],
        }
    elif isinstance(exc, BillingConfigError) and exc.missing_env_vars:
        detail = {"error": str(exc), "missingEnvVars": exc.missing_env_vars}
    else:
        detail = str(exc)
    return HTTPException(status_code=status, detail=detail)


def _envelope(detail: object) -> dict:
    if isinstance(detail, dict):
        return {"ok": False, **detail}
    return {"ok": False, "error": str(detail)}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"ok": False, "error": "Invalid request", "errors": errors})

    @app.exception_handler(DomainError)
    async def _domain_exception_handler(request: Request, exc: DomainError):
        http_exc = to_http_exception(exc)
        if http_exc.status_code >= 500:
            logger.error("api: domain_error path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=http_exc.status_code, content=_envelope(http_exc.detail))

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("api: unhandled_error path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"ok": False, "error": "Internal server error"})
