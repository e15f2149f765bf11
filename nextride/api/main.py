"""FastAPI application entry point."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nextride.api.routes import admin, health, listings, owners, payments
from nextride.config import settings
from nextride.domain.errors import (
    ForbiddenError,
    GatewayError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
)
from nextride.infrastructure.database.connection import dispose_engine
from nextride.log_config import configure_logging

logger = structlog.get_logger(__name__)

_ERROR_STATUS: dict[type[MarketplaceError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    GatewayError: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.log_level)
    logger.info("marketplace_starting")
    yield
    await dispose_engine()
    logger.info("marketplace_stopping")


async def _marketplace_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        (code for error_cls, code in _ERROR_STATUS.items() if isinstance(exc, error_cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    log = logger.warning if status_code >= 500 else logger.info
    log(
        "request_rejected",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
        detail=str(exc),
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(
        title="NextRide Marketplace",
        description="Listing lifecycle, payments and owner counters for the vehicle marketplace.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MarketplaceError, _marketplace_error_handler)

    app.include_router(health.router)
    app.include_router(listings.router)
    app.include_router(admin.router)
    app.include_router(payments.router)
    app.include_router(owners.router)

    return app


app = create_app()
