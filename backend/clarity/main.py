"""Clarity Energy - FastAPI Application Entry Point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from clarity.config import get_settings
from clarity.database import engine, Base
from clarity.exceptions import InvalidPayload, StoreFailure
from clarity.logging_config import setup_logging
from clarity.routers import (
    checkins_router,
    energy_router,
    feedback_router,
    habits_router,
    health_data_router,
    insights_router,
)

import clarity.models  # noqa: F401  registers tables on Base.metadata


settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging(settings)
    # Startup: Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("%s started", settings.app_name)
    yield


app = FastAPI(
    title="Clarity Energy API",
    description="Daily energy scores, explanations and weekly habit patterns",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        settings.frontend_url,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreFailure)
async def store_failure_handler(request: Request, exc: StoreFailure):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable", "operation": exc.operation},
    )


@app.exception_handler(InvalidPayload)
async def invalid_payload_handler(request: Request, exc: InvalidPayload):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# Include routers
app.include_router(checkins_router, prefix="/api/v1")
app.include_router(energy_router, prefix="/api/v1")
app.include_router(health_data_router, prefix="/api/v1")
app.include_router(habits_router, prefix="/api/v1")
app.include_router(insights_router, prefix="/api/v1")
app.include_router(feedback_router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}
