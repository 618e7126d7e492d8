#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
YouTube Data API v3 Client for Tubecollate.

Implements the FetchClient contract on top of google-api-python-client:
playlist pages (playlistItems.list), video details (videos.list) and top
comments (commentThreads.list). Upstream HTTP errors are translated into
the UpstreamError family here, so the pipeline never sees HttpError.
Also provides playlist identifier parsing for user input.
"""

import asyncio
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

import httplib2
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import Error as GoogleApiClientError
from googleapiclient.errors import HttpError
from googleapiclient.http import build_http

# Imports from this package
from config import config
from exceptions import (APIConfigurationError, InvalidInputError, QuotaExceededError,
                        RateLimitedError, ResourceNotFoundError, TimeoutExceededError,
                        UpstreamError)
from logging_config import StructuredLogger
from models import PlaylistPage
from services.fetch_client import FetchClient
from utils import SecureApiKeyManager

logger = StructuredLogger(__name__)


# --- Playlist Identifier Parsing ---

PLAYLIST_URL_PATTERN = re.compile(
    r"(?:https?://)?(?:www\.|m\.|music\.)?"
    r"(?:youtube\.com/(?:playlist|watch|embed/videoseries)|youtu\.be/[a-zA-Z0-9_-]+)"
    r"\?.*?list=(?P<identifier>[a-zA-Z0-9_-]+)"
)
PLAYLIST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{2,}$")
MAX_IDENTIFIER_LENGTH = 200


def extract_playlist_id(value: str) -> str:
    """Extract a playlist ID from a bare ID or a YouTube URL with a `list` parameter.

    Args:
        value: User input, e.g. "PLxyz" or "https://www.youtube.com/playlist?list=PLxyz".

    Returns:
        str: The playlist ID.

    Raises:
        InvalidInputError: If the input is empty, too long or not recognizable.
    """
    if not value or not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Playlist id is required.")

    cleaned = value.strip()
    if len(cleaned) > MAX_IDENTIFIER_LENGTH:
        raise InvalidInputError(f"Playlist id or URL is too long (max {MAX_IDENTIFIER_LENGTH} characters).")

    match = PLAYLIST_URL_PATTERN.match(cleaned)
    if match:
        playlist_id = match.group("identifier")
        logger.debug(f"Extracted playlist id '{playlist_id}' from URL")
        return playlist_id

    if PLAYLIST_ID_PATTERN.match(cleaned):
        return cleaned

    raise InvalidInputError(f"Not a playlist id or playlist URL: '{cleaned[:100]}'")


# --- YouTube API Client ---

class YouTubeAPIClient(FetchClient):
    """Client for the three YouTube Data API calls used by the aggregation pipeline.

    The API key is bound once into the discovery Resource at construction
    and attached to every request from there. Blocking `execute()` calls
    run on a dedicated thread pool, each with its own httplib2 transport
    (httplib2.Http is not thread-safe). A call takes a pool slot before it
    is submitted and holds it until its thread returns, so calls never queue
    inside the pool and API_TIMEOUT_SECONDS only covers the running call.
    """

    # API quota costs for the endpoints used (estimates)
    API_COST = {
        "playlistItems.list": 1,
        "videos.list": 1,
        "commentThreads.list": 1,
    }

    QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded")

    def __init__(self, api_key: Optional[str] = None):
        """Initialize the YouTube API client.

        Args:
            api_key: YouTube Data API key. If None, loaded through SecureApiKeyManager.

        Raises:
            APIConfigurationError: If the API key is missing or the client cannot be built.
        """
        logger.info("Initializing YouTube API Client...")
        self.key_manager = SecureApiKeyManager()
        self.api_key = api_key if api_key is not None else self.key_manager.get_key()

        if not self.api_key:
            logger.critical("YouTube API key is missing.", exc_info=False)
            raise APIConfigurationError("YouTube API Key is not configured.")

        if not self.key_manager.validate_key(self.api_key):
            logger.warning("API key format validation failed (heuristic check).")

        try:
            # cache_discovery=False prevents issues with stale discovery documents
            self.youtube: Resource = build("youtube", "v3", developerKey=self.api_key, cache_discovery=False)
        except Exception as e:
            logger.critical(f"Error initializing YouTube API client build: {e}", error=str(e))
            raise APIConfigurationError(f"Could not initialize YouTube API service: {e}") from e

        self._executor = ThreadPoolExecutor(
            max_workers=config.FETCH_THREAD_POOL_SIZE,
            thread_name_prefix="tubecollate-fetch",
        )
        self._pool_size = config.FETCH_THREAD_POOL_SIZE
        self._call_slots: Optional[asyncio.Semaphore] = None

        # Statistics tracking
        self.api_calls_count = 0
        self.api_quota_used = 0
        self.api_errors_count = 0
        logger.info(
            "YouTube API Client initialized.",
            api_key=self.key_manager.obfuscate_key(self.api_key),
            key_encryption=self.key_manager.encryption_available,
            thread_pool_size=self._pool_size,
        )

    async def _execute_api_call(self, api_request: Any, operation: str) -> Dict[str, Any]:
        """Execute one request off the event loop and translate its failures.

        Args:
            api_request: A googleapiclient HttpRequest (e.g. youtube.videos().list(...)).
            operation: Endpoint name, used for quota accounting and logs.

        Returns:
            dict: The decoded JSON response.

        Raises:
            TimeoutExceededError: If no response arrived within API_TIMEOUT_SECONDS.
            QuotaExceededError, ResourceNotFoundError, RateLimitedError, UpstreamError:
                Translated upstream failures.
        """
        loop = asyncio.get_running_loop()
        timeout = config.API_TIMEOUT_SECONDS

        def _run():
            return api_request.execute(http=build_http(), num_retries=config.API_NUM_RETRIES)

        if self._call_slots is None:
            # Created on first use so it belongs to the running loop
            self._call_slots = asyncio.Semaphore(self._pool_size)
        await self._call_slots.acquire()
        try:
            future = loop.run_in_executor(self._executor, _run)
        except RuntimeError:
            # Executor already shut down
            self._call_slots.release()
            raise
        future.add_done_callback(self._release_call_slot)

        try:
            # shield: a timed-out call keeps its slot until its thread returns
            response = await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError as e:
            self.api_errors_count += 1
            logger.warning(f"Timeout in '{operation}' after {timeout}s", operation=operation, timeout=timeout)
            raise TimeoutExceededError(f"YouTube API call '{operation}' timed out after {timeout} seconds") from e
        except HttpError as http_err:
            self.api_errors_count += 1
            raise self._translate_http_error(http_err, operation) from http_err
        except (GoogleApiClientError, httplib2.HttpLib2Error, OSError, ValueError) as e:
            # Transport failures and undecodable bodies carry no HTTP status
            self.api_errors_count += 1
            logger.warning(f"Transport error in '{operation}': {type(e).__name__}: {e}", operation=operation)
            raise UpstreamError(f"YouTube API call '{operation}' failed: {type(e).__name__}: {e}") from e

        if not isinstance(response, dict):
            self.api_errors_count += 1
            raise UpstreamError(f"Unexpected response type from '{operation}': {type(response).__name__}")

        self.api_calls_count += 1
        self.api_quota_used += self.API_COST.get(operation, 1)
        return response

    def _release_call_slot(self, future: "asyncio.Future") -> None:
        self._call_slots.release()
        if not future.cancelled():
            # Abandoned calls fail silently; their caller already got a timeout
            future.exception()

    def _translate_http_error(self, http_err: HttpError, operation: str) -> UpstreamError:
        """Map an HttpError to the matching UpstreamError subclass."""
        status_code = getattr(getattr(http_err, "resp", None), "status", None)
        try:
            status_code = int(status_code) if status_code is not None else None
        except (TypeError, ValueError):
            status_code = None
        uri = getattr(http_err, "uri", "Unknown URI")
        reason = http_err._get_reason() if hasattr(http_err, "_get_reason") else str(http_err)
        content_bytes = getattr(http_err, "content", b"") or b""
        content_str = content_bytes.decode(config.DEFAULT_ENCODING, errors="replace")

        if status_code == 403 and any(marker in content_str for marker in self.QUOTA_REASONS):
            logger.critical(f"YouTube API quota exceeded during '{operation}'", operation=operation, exc_info=False)
            return QuotaExceededError(f"YouTube API quota exceeded ({operation}).")
        if status_code == 404:
            logger.warning(f"YouTube resource not found (404) in '{operation}' at URI: {uri}", operation=operation)
            return ResourceNotFoundError(f"YouTube resource not found ({operation}): {reason}")
        if status_code == 429:
            logger.warning(f"Rate limited (429) in '{operation}'", operation=operation)
            return RateLimitedError(f"YouTube API rate limit reached ({operation}).")

        logger.error(
            f"HTTP error {status_code} in '{operation}': {reason}",
            operation=operation, status=status_code, exc_info=False,
        )
        return UpstreamError(f"YouTube API error {status_code} ({operation}): {reason}", status_code=status_code)

    # --- FetchClient operations ---

    async def list_playlist_page(self, playlist_id: str, cursor: str) -> PlaylistPage:
        """Fetch one page of playlist membership (video IDs only).

        Args:
            playlist_id: The YouTube playlist ID.
            cursor: Page token; "" requests the first page.

        Returns:
            PlaylistPage: IDs in page order; `next_cursor` is None on the last page.
        """
        params: Dict[str, Any] = {
            "part": "contentDetails",
            "playlistId": playlist_id,
            "maxResults": config.PAGE_SIZE,
            "fields": "items(contentDetails/videoId),nextPageToken,pageInfo/totalResults",
        }
        if cursor:
            params["pageToken"] = cursor

        logger.debug(f"Requesting playlist page for {playlist_id} (cursor='{cursor}')", playlist_id=playlist_id)
        response = await self._execute_api_call(
            self.youtube.playlistItems().list(**params), "playlistItems.list"
        )

        # Items without a video id (e.g. removed videos) keep their rank with an empty id
        video_ids = tuple(
            item.get("contentDetails", {}).get("videoId", "") for item in response.get("items", [])
        )
        return PlaylistPage(
            video_ids=video_ids,
            next_cursor=response.get("nextPageToken"),
            total_results=response.get("pageInfo", {}).get("totalResults"),
        )

    async def get_video_details(self, video_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Fetch snippet, contentDetails and statistics for up to PAGE_SIZE video IDs.

        Raises:
            ValueError: If no IDs or more than PAGE_SIZE IDs are given.
        """
        if not video_ids:
            raise ValueError("get_video_details requires at least one video id")
        if len(video_ids) > config.PAGE_SIZE:
            raise ValueError(f"At most {config.PAGE_SIZE} video ids per call, got {len(video_ids)}")

        request = self.youtube.videos().list(
            part="snippet,contentDetails,statistics",
            id=",".join(video_ids),
            maxResults=len(video_ids),
        )
        response = await self._execute_api_call(request, "videos.list")
        return response.get("items", [])

    async def get_comments(self, video_id: str, max_results: int) -> List[Dict[str, Any]]:
        """Fetch the top-level comment threads of a video, by relevance."""
        request = self.youtube.commentThreads().list(
            part="snippet",
            videoId=video_id,
            order="relevance",
            textFormat="plainText",
            maxResults=max_results,
        )
        response = await self._execute_api_call(request, "commentThreads.list")
        return response.get("items", [])[:max_results]

    async def get_api_stats(self) -> Dict[str, Any]:
        """Returns current API usage statistics."""
        return {
            "api_calls_count": self.api_calls_count,
            "api_quota_used_estimated": self.api_quota_used,
            "api_errors_count": self.api_errors_count,
            "api_key_info": {
                "available": bool(self.api_key),
                "obfuscated": self.key_manager.obfuscate_key(self.api_key),
            },
        }

    async def close(self) -> None:
        """Shut down the thread pool and release the discovery Resource."""
        self._executor.shutdown(wait=False)
        self.youtube.close()
        logger.info("YouTube API Client closed.")
