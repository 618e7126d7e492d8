#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Abstract upstream client used by the aggregation pipeline.

The pipeline only depends on these three calls. YouTubeAPIClient is the
production implementation; tests provide in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from models import PlaylistPage


class FetchClient(ABC):
    """One coroutine per upstream call type.

    Every method raises `exceptions.UpstreamError` (or a subclass) on failure
    and returns decoded data on success.
    """

    api_calls_count: int = 0
    api_quota_used: int = 0

    @abstractmethod
    async def list_playlist_page(self, playlist_id: str, cursor: str) -> PlaylistPage:
        """Fetch one page of playlist membership.

        Args:
            playlist_id: The YouTube playlist ID.
            cursor: Page token; "" requests the first page.

        Returns:
            PlaylistPage: Video ids in page order and the next cursor (None on the last page).
        """

    @abstractmethod
    async def get_video_details(self, video_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Fetch video resources (snippet, contentDetails, statistics) for one or more ids.

        Returns:
            list: The response `items`, in the order upstream returned them.
        """

    @abstractmethod
    async def get_comments(self, video_id: str, max_results: int) -> List[Dict[str, Any]]:
        """Fetch the top-level comment threads of a video, by relevance.

        Returns:
            list: The response `items` (at most `max_results`).
        """

    async def get_api_stats(self) -> Dict[str, Any]:
        return {
            "api_calls_count": self.api_calls_count,
            "api_quota_used_estimated": self.api_quota_used,
        }

    async def close(self) -> None:
        """Release resources held by the client."""
        return None
