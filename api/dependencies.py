#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FastAPI dependency injection functions for Tubecollate services.

Hands the aggregation engine, created once during application startup
together with its upstream client, to the route handlers.
"""

from typing import Optional

from fastapi import HTTPException, status

from logging_config import StructuredLogger
from services.engine import PlaylistAggregationEngine

logger = StructuredLogger(__name__)

# --- Global Service Instances ---
# Populated during the application lifespan startup.
aggregation_engine: Optional[PlaylistAggregationEngine] = None


# --- Dependency Injection Functions ---

def get_aggregation_engine() -> PlaylistAggregationEngine:
    """Dependency function to get the initialized PlaylistAggregationEngine.

    Raises:
        HTTPException: 503 Service Unavailable if the engine is not initialized.
    """
    if not aggregation_engine:
        logger.critical("Dependency Error: Aggregation Engine not initialized.", exc_info=False)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Initialization Error: Aggregation Engine is not available.",
            headers={"X-Error-Code": "SERVICE_UNAVAILABLE_ENGINE"}
        )
    return aggregation_engine
