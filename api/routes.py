#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
API Routes for the Tubecollate application using FastAPI.

Defines the playlist aggregation endpoint and the health check.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import ValidationError

from api.dependencies import get_aggregation_engine
from exceptions import InvalidInputError, handle_exception
from logging_config import StructuredLogger
from middleware import request_metrics
from models import ErrorResponse, PlaylistRequest, PlaylistResponse
from services.engine import PlaylistAggregationEngine

# Import version directly from root __init__.py
from __init__ import __version__ as app_version

logger = StructuredLogger(__name__)

router = APIRouter()

# Define common error responses for OpenAPI documentation
ERROR_RESPONSES: Dict[Any, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid playlist id or options"},
    403: {"model": ErrorResponse, "description": "YouTube API quota exceeded or access denied"},
    404: {"model": ErrorResponse, "description": "Playlist not found"},
    429: {"model": ErrorResponse, "description": "Rate limited by the YouTube API"},
    502: {"model": ErrorResponse, "description": "Upstream failure (page fetch or strict-mode enrichment)"},
    503: {"model": ErrorResponse, "description": "Service unavailable (initialization failed)"},
    504: {"model": ErrorResponse, "description": "Upstream timeout"},
}


@router.get(
    "/playlist",
    response_model=PlaylistResponse,
    responses=ERROR_RESPONSES,
    summary="Aggregate a playlist",
    description="Returns every video of a YouTube playlist in playlist order, enriched with "
                "metadata, statistics and top comments. Partial enrichment failures are "
                "reported in `failures` with `complete=false`."
)
async def get_playlist(
    id: Optional[str] = Query(None, description="Playlist ID or a YouTube URL containing a 'list' parameter."),
    details: Optional[bool] = Query(None, description="Fetch title, statistics and duration."),
    comments: Optional[bool] = Query(None, description="Fetch top comments."),
    batch: Optional[bool] = Query(None, description="One batched video details call per page."),
    strict: Optional[bool] = Query(None, description="Fail the request on any enrichment failure."),
    bounded: Optional[bool] = Query(None, description="Wait for each page's enrichment before the next page."),
    engine: PlaylistAggregationEngine = Depends(get_aggregation_engine),
):
    """Aggregate one playlist.

    Raises:
        HTTPException: 400 for bad input, otherwise the status mapped from the
            aggregation failure's cause (404, 403, 429, 502, 504).
    """
    logger.info(f"Received /playlist request for: {(id or '')[:100]}")

    try:
        if id is None:
            raise InvalidInputError("Missing required query parameter 'id'.")
        try:
            request = PlaylistRequest(
                id=id, details=details, comments=comments, batch=batch, strict=strict, bounded=bounded
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid request parameters: {e.errors()[0].get('msg', 'invalid value')}") from e

        result = await engine.aggregate(request.id, request.to_options())
        return PlaylistResponse.from_result(result)

    except Exception as e:
        logger.warning(f"/playlist request for '{(id or '')[:100]}' failed: {type(e).__name__}: {e}")
        raise handle_exception(e)


@router.get(
    "/health",
    summary="Health Check",
    description="Provides the operational status of the Tubecollate service and its components, including basic statistics.",
    response_description="JSON object containing the health status and component readiness."
)
async def health_check(engine: PlaylistAggregationEngine = Depends(get_aggregation_engine)):
    """Endpoint to check system health and retrieve operational statistics."""
    logger.debug("Health check endpoint requested.")

    health_data: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service_version": app_version,
        "components": {
            "api_client": "ready",
            "aggregation_engine": "ready",
        },
        "requests": request_metrics.get_stats(),
    }

    try:
        health_data["statistics"] = await engine.get_global_stats()
    except Exception as e:
        logger.error(f"Error collecting statistics for /health endpoint: {e}")
        health_data["statistics"] = {"error": f"Failed to collect detailed stats: {str(e)}"}

    return Response(
        content=json.dumps(health_data, default=str),
        status_code=status.HTTP_200_OK,
        media_type="application/json"
    )
