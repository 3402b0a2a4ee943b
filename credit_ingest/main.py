"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers the API routers.
"""
import os
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .core.config import settings
from .core.logging_config import configure_logging
from .api.routers import ingestion

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)


app = FastAPI(
    title="Credit Ingest API",
    version=__version__,
    description="Preview, map and validate partner credit data before it is sent for scoring",
)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
allowed_origins = [origin.strip() for origin in allowed_origins]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ingestion.router)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "message": "Credit Ingest API",
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "credit-ingest-api",
    }
