#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Playlist Aggregation Engine for Tubecollate.

Walks every page of a playlist, reserves one result slot per item, fans out
enrichment tasks for each page and returns the position-ordered result
together with any lenient-mode enrichment failures.
"""

import time
import uuid
from typing import Any, Dict, Optional

# Imports from this package
from exceptions import (AggregationError, APIConfigurationError, InvalidInputError,
                        QuotaExceededError, ResourceNotFoundError, UpstreamError)
from logging_config import StructuredLogger
from models import AggregationResult, EnrichmentOptions, PlaylistItemRef, PlaylistPage
from services.aggregator import ResultAggregator
from services.enrichment import EnrichmentFanOut
from services.fetch_client import FetchClient
from services.youtube_api import extract_playlist_id
from utils import performance_timer

logger = StructuredLogger(__name__)

MAX_COMMENTS_PER_CALL = 100  # commentThreads.list maxResults upper bound


class PlaylistAggregationEngine:
    """Page walker and orchestrator of one playlist aggregation per call.

    The FetchClient is constructed once by the caller and shared by every
    aggregation; each call to `aggregate()` gets its own ResultAggregator
    and EnrichmentFanOut.
    """

    def __init__(self, api_client: FetchClient):
        """Initialize the engine.

        Args:
            api_client: The upstream client (YouTubeAPIClient in production).
        """
        if not isinstance(api_client, FetchClient):
            raise TypeError("api_client must be an instance of FetchClient")

        self.api_client = api_client

        # Global statistics for the engine instance
        self._global_stats = {
            "requests_processed": 0,
            "requests_failed": 0,
            "videos_aggregated_total": 0,
            "enrichment_failures_total": 0,
            "pages_fetched_total": 0,
            "total_processing_time_ms": 0.0,
            "engine_start_time": time.monotonic()
        }
        logger.info("PlaylistAggregationEngine initialized.")

    async def shutdown(self):
        """Release the upstream client."""
        logger.info("Shutting down PlaylistAggregationEngine...")
        await self.api_client.close()
        logger.info("PlaylistAggregationEngine shut down complete.")

    async def aggregate(self, playlist_id: str,
                        options: Optional[EnrichmentOptions] = None) -> AggregationResult:
        """Aggregate every video of a playlist, in playlist order.

        Args:
            playlist_id: Playlist ID or YouTube URL carrying a `list` parameter.
            options: Enrichment switches. Defaults come from config.

        Returns:
            AggregationResult: `videos[i].position == i` for every i; lenient
            enrichment failures are listed in `failures`.

        Raises:
            InvalidInputError: Malformed playlist id or options; no upstream call is made.
            AggregationError: A page fetch failed, or an enrichment failed in strict mode.
                No partial result is returned.
        """
        options = options or EnrichmentOptions.from_config()
        playlist_id = extract_playlist_id(playlist_id)
        self._validate_options(options)

        request_context = self._init_request_context(playlist_id, options)
        request_id = request_context["request_id"]
        log_prefix = f"[REQ-{request_id}]"
        request_logger = logger.bind(request_id=request_id, playlist_id=playlist_id)

        aggregator = ResultAggregator(playlist_id)
        fan_out = EnrichmentFanOut(self.api_client, aggregator, options, request_id)
        page_count = 0

        try:
            with performance_timer(f"aggregate_playlist_{playlist_id}", threshold_ms=5000, log=request_logger):
                cursor: Optional[str] = ""
                while cursor is not None:
                    if not options.wait_per_page:
                        fan_out.raise_for_failed()

                    page = await self._fetch_page(playlist_id, cursor, page_count)
                    page_count += 1
                    if page_count == 1 and page.total_results is not None:
                        request_logger.info(
                            f"{log_prefix} Playlist reports {page.total_results} item(s).",
                            total_results=page.total_results,
                        )

                    base = len(aggregator)
                    refs = [
                        PlaylistItemRef(video_id=video_id, position=base + index)
                        for index, video_id in enumerate(page.video_ids)
                    ]
                    aggregator.reserve_page(refs)
                    tasks = fan_out.launch_page(refs)

                    request_logger.debug(
                        f"{log_prefix} Page {page_count}: {len(refs)} item(s), positions {base}..{base + len(refs) - 1}",
                        page=page_count, items=len(refs), next_cursor=page.next_cursor,
                    )

                    if options.wait_per_page:
                        await fan_out.join(tasks)

                    cursor = page.next_cursor

                await fan_out.join_all()
                aggregator.mark_complete()
                videos = aggregator.snapshot()

        except BaseException as e:
            await fan_out.cancel_all()
            aggregator.discard()
            self._handle_aggregation_exception(e, request_context, page_count)
            raise

        failures = fan_out.sorted_failures()
        stats = self._get_processing_stats(request_context, page_count)
        self._global_stats["videos_aggregated_total"] += len(videos)
        self._global_stats["enrichment_failures_total"] += len(failures)

        if failures:
            logger.warning(
                f"{log_prefix} Aggregated {len(videos)} video(s) over {page_count} page(s) with {len(failures)} enrichment failure(s).",
                request_id=request_id, videos=len(videos), failures=len(failures),
            )
        else:
            logger.info(
                f"{log_prefix} Aggregated {len(videos)} video(s) over {page_count} page(s).",
                request_id=request_id, videos=len(videos), pages=page_count,
            )

        return AggregationResult(
            playlist_id=playlist_id,
            videos=videos,
            failures=failures,
            page_count=page_count,
            stats=stats,
        )

    @staticmethod
    def _validate_options(options: EnrichmentOptions) -> None:
        if options.fetch_comments and not 1 <= options.max_comments <= MAX_COMMENTS_PER_CALL:
            raise InvalidInputError(
                f"max_comments must be between 1 and {MAX_COMMENTS_PER_CALL}, got {options.max_comments}"
            )

    def _init_request_context(self, playlist_id: str, options: EnrichmentOptions) -> Dict[str, Any]:
        """Initialize the request context with tracking information."""
        request_id = str(uuid.uuid4())[:8]  # Short unique ID for logging

        logger.info(
            f"[REQ-{request_id}] Aggregating playlist '{playlist_id}'",
            request_id=request_id, playlist_id=playlist_id,
            details=options.fetch_video_details, comments=options.fetch_comments,
            batch=options.batch_video_details, strict=options.strict,
            bounded=options.wait_per_page,
        )

        self._global_stats["requests_processed"] += 1

        return {
            "start_time_mono": time.monotonic(),
            "request_start_api_calls": self.api_client.api_calls_count,
            "request_start_quota_used": self.api_client.api_quota_used,
            "request_id": request_id,
        }

    async def _fetch_page(self, playlist_id: str, cursor: str, page_index: int) -> PlaylistPage:
        """Fetch one playlist page; any upstream failure aborts the aggregation."""
        try:
            return await self.api_client.list_playlist_page(playlist_id, cursor)
        except UpstreamError as e:
            raise AggregationError(
                f"Failed to fetch page {page_index + 1} of playlist '{playlist_id}': {e.message}",
                cause=e,
                stage="page",
            ) from e

    def _handle_aggregation_exception(self, exception: BaseException, request_context: Dict[str, Any],
                                      page_count: int) -> None:
        """Log a fatal aggregation failure according to its type."""
        request_id = request_context["request_id"]
        self._global_stats["requests_failed"] += 1
        self._get_processing_stats(request_context, page_count)

        cause = exception.cause if isinstance(exception, AggregationError) else None
        if isinstance(cause, QuotaExceededError):
            logger.critical(f"[REQ-{request_id}] Quota exceeded during aggregation: {exception}", exc_info=False)
        elif isinstance(cause, ResourceNotFoundError):
            logger.warning(f"[REQ-{request_id}] Playlist not found: {exception}")
        elif isinstance(exception, AggregationError):
            logger.error(
                f"[REQ-{request_id}] Aggregation aborted at stage '{exception.stage}': {exception}",
                stage=exception.stage, position=exception.position, exc_info=False,
            )
        elif isinstance(exception, APIConfigurationError):
            logger.error(f"[REQ-{request_id}] API configuration error: {exception}")
        elif isinstance(exception, Exception):
            logger.critical(f"[REQ-{request_id}] Unexpected error during aggregation: {exception}", exc_info=True)
        else:
            logger.info(f"[REQ-{request_id}] Aggregation cancelled ({type(exception).__name__}).")

    def _get_processing_stats(self, request_context: Dict[str, Any], page_count: int) -> Dict[str, Any]:
        """Calculate processing statistics for a single request."""
        processing_time_ms = (time.monotonic() - request_context["start_time_mono"]) * 1000
        self._global_stats["total_processing_time_ms"] += processing_time_ms
        self._global_stats["pages_fetched_total"] += page_count

        stats = {
            "processing_time_ms": round(processing_time_ms, 2),
            "api_calls_request": self.api_client.api_calls_count - request_context["request_start_api_calls"],
            "api_quota_used_request": self.api_client.api_quota_used - request_context["request_start_quota_used"],
            "request_id": request_context["request_id"],
        }
        logger.debug(
            f"[REQ-{stats['request_id']}] Request stats calculated: Time={stats['processing_time_ms']:.2f}ms, "
            f"API Calls={stats['api_calls_request']}, Quota Used={stats['api_quota_used_request']}",
            **stats
        )
        return stats

    async def get_global_stats(self) -> Dict[str, Any]:
        """Get global operational statistics for the engine instance."""
        uptime = time.monotonic() - self._global_stats["engine_start_time"]
        total_requests = self._global_stats["requests_processed"]

        return {
            "engine_uptime_seconds": round(uptime, 1),
            "total_requests_processed": total_requests,
            "total_requests_failed": self._global_stats["requests_failed"],
            "total_videos_aggregated": self._global_stats["videos_aggregated_total"],
            "total_enrichment_failures": self._global_stats["enrichment_failures_total"],
            "total_pages_fetched": self._global_stats["pages_fetched_total"],
            "avg_processing_time_ms": round(self._global_stats["total_processing_time_ms"] / total_requests, 2) if total_requests else 0.0,
            "api_client_stats": await self.api_client.get_api_stats(),
        }
