# pyright: reportMissingTypeStubs=false
"""
Clinic Scheduler Backend API

A FastAPI application exposing provider scheduling: weekly work patterns,
time-off, availability search, conflict detection, atomic booking and
utilization reporting.

Features:
- SQLAlchemy ORM on PostgreSQL (SQLite for local runs and tests)
- Per-provider serialized booking with bounded retries
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api import scheduling
from core.database import create_tables
from services import BookingCoordinator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic Scheduler API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic Scheduler Backend API")

    try:
        create_tables()
        logger.info("✅ Database schema ready")
    except Exception as e:
        logger.exception(f"❌ Failed to prepare database schema: {e}")
        raise

    yield

    logger.info("🛑 Shutting down Clinic Scheduler Backend API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Scheduler Backend",
    description="Provider availability, conflict detection and atomic booking",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# One coordinator per application: it owns the per-provider booking locks
app.state.booking_coordinator = BookingCoordinator()

# Include API routers
app.include_router(
    scheduling.router,
    prefix="/api/scheduling",
    tags=["scheduling"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
        503: {"description": "Temporarily unavailable, retry"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Clinic Scheduler Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
