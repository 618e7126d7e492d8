#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main FastAPI application setup for Tubecollate.

Initializes the FastAPI application, sets up lifespan management for the
upstream client and the aggregation engine, registers middleware and
includes the API routes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import version directly from __init__.py
from __init__ import __version__

from api import dependencies, routes
from config import config
from exceptions import APIConfigurationError
from logging_config import StructuredLogger
from middleware import RequestLoggingMiddleware
from services.engine import PlaylistAggregationEngine
from services.youtube_api import YouTubeAPIClient

logger = StructuredLogger(__name__)


# --- Lifespan Management ---

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the upstream client and engine on startup, release them on shutdown.

    Populates the global service instances defined in api.dependencies. A
    missing or unusable API key leaves them unset, and the routes answer 503.
    """
    logger.info("Starting Tubecollate FastAPI application lifespan...")

    try:
        logger.info("Initializing services...")
        # Plain YOUTUBE_API_KEY or its encrypted form, resolved by SecureApiKeyManager
        api_client = YouTubeAPIClient()
        dependencies.aggregation_engine = PlaylistAggregationEngine(api_client=api_client)
        logger.info("Tubecollate services initialized successfully.")
    except APIConfigurationError as api_err:
        logger.critical(f"FATAL ERROR: {api_err.message} Services will not be initialized.", exc_info=False)
        dependencies.aggregation_engine = None

    yield

    # --- Shutdown ---
    logger.info("Shutting down Tubecollate FastAPI application lifespan...")
    if dependencies.aggregation_engine:
        await dependencies.aggregation_engine.shutdown()
    else:
        logger.info("Aggregation engine was not initialized, skipping shutdown.")
    dependencies.aggregation_engine = None
    logger.info("Lifespan cleanup finished.")


# --- FastAPI Application Instantiation ---

app = FastAPI(
    lifespan=lifespan,
    title="Tubecollate API",
    description="Aggregates every video of a YouTube playlist, in playlist order, with metadata and top comments.",
    version=__version__
)

# --- Middleware Registration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"]
)
logger.debug(f"CORS Middleware added. Allowed origins: {config.ALLOWED_ORIGINS}")

app.add_middleware(RequestLoggingMiddleware)

# --- API Router Inclusion ---
app.include_router(routes.router)
logger.info("FastAPI application setup complete.")
