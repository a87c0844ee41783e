"""
Booking Flow API

Serves the booking flow controller over HTTP. The chat backend posts each
AI reply here and relays whatever comes back to the widget.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from booking_flow.config import settings
from booking_flow.api.routes import booking, health
from booking_flow.infra.backend import close_backend_client

API_VERSION = "1.0.0"


def setup_logging() -> None:
    """Configure root logging; DEBUG when settings.debug is on."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Per-request lines from uvicorn and httpx only in debug
    quiet = logging.INFO if settings.debug else logging.WARNING
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(quiet)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the uptime clock, then release the backend client on exit."""
    setup_logging()
    health.set_start_time()
    logger.info(
        f"{settings.app_name} starting ({settings.app_env}), "
        f"backend {settings.backend_api_url}, "
        f"offering up to {settings.slot_offer_limit} slots"
    )

    yield

    await close_backend_client()
    logger.info("Backend client closed, booking flow stopped")


app = FastAPI(
    title="Booking Flow API",
    description=(
        "Augments AI chat replies with a booking dialogue: intent detection, "
        "name and phone collection, slot offers and appointment confirmation."
    ),
    version=API_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "detail": exc.errors(),
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Answer 500; the exception text is only shown in development."""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.is_development else "Internal server error",
        },
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    started = time.perf_counter()
    try:
        return await call_next(request)
    finally:
        if settings.debug:
            logger.debug(
                f"{request.method} {request.url.path} took "
                f"{time.perf_counter() - started:.3f}s"
            )


app.include_router(health.router)
app.include_router(booking.router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Service name, version and the booking entry point."""
    return {
        "name": settings.app_name,
        "version": API_VERSION,
        "environment": settings.app_env,
        "process": "/booking/process",
        "docs": "/docs" if settings.is_development else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "booking_flow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
