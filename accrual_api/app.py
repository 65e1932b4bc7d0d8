"""
HTTP application factory.

``create_app()`` wires a ``LedgerServices`` container onto
``app.state.services`` and maps ledger errors onto status codes:

    ValidationError         422
    NotFoundError           404
    InsufficientFundsError  409
    DuplicatePeriodError    409
    ContractNotActiveError  409
    OnCooldownError         429  (body adds onCooldown, remainingSeconds)
    PersistenceError        503
    anything else ledger    500

Every error body is ``{error: <code>, message: <text>, ...fields}`` with
the exception's structured attributes in camelCase.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from accrual_api.routers import balances, contracts, distribution, withdrawals
from accrual_config import get_settings
from accrual_config.schema import LedgerSettings
from accrual_kernel import __version__
from accrual_kernel.db.engine import SessionFactory
from accrual_kernel.domain.clock import Clock
from accrual_kernel.exceptions import (
    AccrualLedgerError,
    ContractNotActiveError,
    DuplicatePeriodError,
    InsufficientFundsError,
    NotFoundError,
    OnCooldownError,
    PersistenceError,
    ValidationError,
)
from accrual_kernel.logging_config import get_logger
from accrual_services.container import LedgerServices
from accrual_services.referral_hook import ReferralResolver

logger = get_logger("api")

_STATUS_BY_ERROR: tuple[tuple[type[AccrualLedgerError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (InsufficientFundsError, 409),
    (DuplicatePeriodError, 409),
    (ContractNotActiveError, 409),
    (OnCooldownError, 429),
    (PersistenceError, 503),
)

_HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def status_for(exc: AccrualLedgerError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def error_body(exc: AccrualLedgerError) -> dict[str, Any]:
    body: dict[str, Any] = {"error": exc.code, "message": exc.message}
    for key, value in vars(exc).items():
        if key.startswith("_") or key in ("message", "args"):
            continue
        body[to_camel(key)] = value
    if isinstance(exc, OnCooldownError):
        body["onCooldown"] = True
    return jsonable_encoder(body)


async def _ledger_error_handler(request: Request, exc: AccrualLedgerError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "request_failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": status_code,
            "error_code": exc.code,
        },
    )
    return JSONResponse(status_code=status_code, content=error_body(exc))


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            {
                "error": ValidationError.code,
                "message": "Request body or parameters are invalid",
                "details": exc.errors(),
            }
        ),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            "message": str(exc.detail),
        },
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: LedgerSettings | None = None,
    session_factory: SessionFactory | None = None,
    clock: Clock | None = None,
    referral_resolver: ReferralResolver | None = None,
    create_schema: bool = False,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Loaded settings; ``get_settings()`` when None.
        session_factory: Existing factory (tests pass one bound to their
            engine); otherwise an engine is built from ``settings``.
        clock: Injected clock for deterministic tests.
        referral_resolver: Referrer lookup for the commission hook.
        create_schema: Create missing tables on a freshly built engine.
    """
    settings = settings or get_settings()
    services = LedgerServices.from_settings(
        settings,
        session_factory=session_factory,
        clock=clock,
        referral_resolver=referral_resolver,
        create_schema=create_schema,
    )

    app = FastAPI(
        title="Accrual Ledger API",
        version=__version__,
        description="Profit accrual, distribution runs and withdrawal settlement",
    )
    app.state.services = services

    app.add_exception_handler(AccrualLedgerError, _ledger_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)

    @app.get("/health")
    def health():
        return {"status": "healthy", "version": __version__}

    app.include_router(distribution.router)
    app.include_router(withdrawals.router)
    app.include_router(balances.router)
    app.include_router(contracts.router)

    logger.info("api_created", extra={"config_source": settings.source})
    return app
