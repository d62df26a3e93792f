"""DirectStay — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from directstay.api.v1.admin import router as admin_router
from directstay.api.v1.bookings import router as bookings_router
from directstay.api.v1.properties import router as properties_router
from directstay.api.v1.webhooks import router as webhooks_router
from directstay.config import settings
from directstay.dates import format_date
from directstay.errors import BookingError, ConflictError

# Configure root logger so all directstay.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    yield
    # Shutdown: release pooled connections
    from directstay.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Direct-booking backend for short-term rental properties.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Map booking-domain errors onto HTTP responses."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    content: dict = {"detail": exc.message}
    if isinstance(exc, ConflictError):
        content["conflicting_dates"] = [format_date(day) for day in exc.dates]
        content["source"] = exc.source
    return JSONResponse(status_code=exc.status_code, content=content)


# Routers
app.include_router(properties_router)
app.include_router(bookings_router)
app.include_router(webhooks_router)
app.include_router(admin_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
