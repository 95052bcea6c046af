"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timesheet_payroll.api.routes import health_router, payroll_periods_router
from timesheet_payroll.config import get_settings
from timesheet_payroll.database import dispose_db, init_db
from timesheet_payroll.exceptions import (
    CalculationInProgressError,
    InvalidEmploymentDataError,
    InvalidPeriodError,
    InvalidTransitionError,
    PayrollError,
    PeriodNotFoundError,
    RosterUnavailableError,
    RulesNotFoundError,
    RunNotFoundError,
    SupersessionRequiredError,
)

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins
ERROR_STATUS_CODES: list[tuple[type[PayrollError], int]] = [
    (PeriodNotFoundError, status.HTTP_404_NOT_FOUND),
    (RunNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (CalculationInProgressError, status.HTTP_409_CONFLICT),
    (SupersessionRequiredError, status.HTTP_409_CONFLICT),
    (InvalidPeriodError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidEmploymentDataError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RulesNotFoundError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RosterUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: PayrollError) -> int:
    """HTTP status code for a domain error."""
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="Timesheet Payroll API",
        description="Payroll calculation from approved timesheets",
        version=settings.engine_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PayrollError)
    async def payroll_exception_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map domain errors to HTTP responses."""
        status_code = status_code_for(exc)
        logger.info("%s %s -> %d %s: %s", request.method, request.url.path, status_code, exc.code, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(payroll_periods_router, prefix="/api/v1")

    return app
