#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Dataclasses and Pydantic models for Tubecollate.

The dataclasses are the pipeline's internal records (playlist item
references, video and comment records, options, results). The Pydantic
models define the HTTP request/response shapes.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import isodate
from pydantic import BaseModel, Field, field_validator

from config import config
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


# --- Pipeline Records ---

@dataclass(frozen=True)
class PlaylistItemRef:
    """One playlist member: its video id and absolute zero-based position in the playlist."""

    video_id: str
    position: int


@dataclass(frozen=True)
class PlaylistPage:
    """One decoded page of playlist membership.

    `next_cursor` is None when there are no further pages. It is never the
    empty string, which only means "first page" on the request side.
    """

    video_ids: Tuple[str, ...]
    next_cursor: Optional[str] = None
    total_results: Optional[int] = None


@dataclass(frozen=True)
class CommentRecord:
    """A top-level comment, built in one step from one commentThreads item."""

    author_name: str = ""
    author_profile_image_url: str = ""
    text: str = ""
    like_count: str = ""
    published_at: str = ""

    @classmethod
    def from_api_response(cls, item: Dict[str, Any]) -> "CommentRecord":
        """Create a CommentRecord from a commentThreads.list item.

        Args:
            item: One element of the response's `items` array.

        Returns:
            CommentRecord: Counters are kept as strings, like the rest of the API data.
        """
        snippet = item.get("snippet", {}).get("topLevelComment", {}).get("snippet", {})
        return cls(
            author_name=snippet.get("authorDisplayName", ""),
            author_profile_image_url=snippet.get("authorProfileImageUrl", ""),
            text=snippet.get("textOriginal") or snippet.get("textDisplay", ""),
            like_count=_as_counter(snippet.get("likeCount")),
            published_at=snippet.get("publishedAt", ""),
        )


@dataclass(frozen=True)
class VideoDetails:
    """The metadata group written by the video-details worker."""

    title: str = ""
    channel_title: str = ""
    duration_raw: str = ""
    view_count: str = ""
    like_count: str = ""
    dislike_count: str = ""
    favorite_count: str = ""
    comment_count: str = ""

    @classmethod
    def from_api_response(cls, item: Dict[str, Any]) -> "VideoDetails":
        """Create VideoDetails from a videos.list item (snippet, contentDetails, statistics).

        Statistics hidden by the uploader are absent upstream and stay empty.
        """
        snippet = item.get("snippet", {})
        content_details = item.get("contentDetails", {})
        statistics = item.get("statistics", {})
        return cls(
            title=snippet.get("title", ""),
            channel_title=snippet.get("channelTitle", ""),
            duration_raw=content_details.get("duration", ""),
            view_count=_as_counter(statistics.get("viewCount")),
            like_count=_as_counter(statistics.get("likeCount")),
            dislike_count=_as_counter(statistics.get("dislikeCount")),
            favorite_count=_as_counter(statistics.get("favoriteCount")),
            comment_count=_as_counter(statistics.get("commentCount")),
        )


def _as_counter(value: Any) -> str:
    """Counters are opaque decimal strings; never parse them into numbers."""
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class VideoRecord:
    """Aggregated data for the video at one playlist position.

    Built as a skeleton when its slot is reserved, then replaced by patched
    copies as the details and comments workers complete. `details_enriched`
    and `comments_enriched` tell an empty field apart from one that was
    never fetched.
    """

    video_id: str
    position: int
    url: str = ""
    title: str = ""
    channel_title: str = ""
    duration_raw: str = ""
    view_count: str = ""
    like_count: str = ""
    dislike_count: str = ""
    favorite_count: str = ""
    comment_count: str = ""
    top_comments: Tuple[CommentRecord, ...] = ()
    details_enriched: bool = False
    comments_enriched: bool = False

    @classmethod
    def skeleton(cls, ref: PlaylistItemRef) -> "VideoRecord":
        """The reservation value: only id, position and url are known."""
        url = f"{config.YOUTUBE_WATCH_URL}{ref.video_id}" if ref.video_id else ""
        return cls(video_id=ref.video_id, position=ref.position, url=url)

    def with_details(self, details: VideoDetails) -> "VideoRecord":
        return replace(
            self,
            title=details.title,
            channel_title=details.channel_title,
            duration_raw=details.duration_raw,
            view_count=details.view_count,
            like_count=details.like_count,
            dislike_count=details.dislike_count,
            favorite_count=details.favorite_count,
            comment_count=details.comment_count,
            details_enriched=True,
        )

    def with_comments(self, comments: Tuple[CommentRecord, ...]) -> "VideoRecord":
        return replace(self, top_comments=tuple(comments), comments_enriched=True)

    @property
    def duration_seconds(self) -> Optional[int]:
        """Duration parsed from the ISO 8601 `duration_raw`, or None if absent/unparsable."""
        if not self.duration_raw:
            return None
        try:
            return int(isodate.parse_duration(self.duration_raw).total_seconds())
        except (isodate.ISO8601Error, TypeError, ValueError, AttributeError):
            logger.debug(f"Unparsable duration '{self.duration_raw}' for video {self.video_id}")
            return None


@dataclass(frozen=True)
class EnrichmentOptions:
    """Per-aggregation switches.

    Attributes:
        fetch_video_details: Fetch title, statistics and duration.
        fetch_comments: Fetch top comments.
        batch_video_details: One videos.list call per page instead of one per item.
        strict: Abort the whole aggregation on the first enrichment failure.
        wait_per_page: Join a page's enrichment tasks before fetching the next page.
        max_comments: Number of top comments kept per video.
    """

    fetch_video_details: bool = True
    fetch_comments: bool = True
    batch_video_details: bool = False
    strict: bool = False
    wait_per_page: bool = True
    max_comments: int = 3

    @classmethod
    def from_config(cls, **overrides: Any) -> "EnrichmentOptions":
        """Options from configured defaults, with None overrides ignored."""
        values = {
            "fetch_video_details": config.DEFAULT_FETCH_VIDEO_DETAILS,
            "fetch_comments": config.DEFAULT_FETCH_COMMENTS,
            "batch_video_details": config.DEFAULT_BATCH_VIDEO_DETAILS,
            "strict": config.DEFAULT_STRICT_MODE,
            "wait_per_page": config.DEFAULT_WAIT_PER_PAGE,
            "max_comments": config.MAX_COMMENTS,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


ENRICHMENT_VIDEO_DETAILS = "video_details"
ENRICHMENT_COMMENTS = "comments"


@dataclass(frozen=True)
class EnrichmentFailure:
    """Diagnostic entry for one enrichment call that failed in lenient mode."""

    position: int
    video_id: str
    kind: str
    message: str
    status: Optional[int] = None
    error_code: Optional[str] = None


@dataclass
class AggregationResult:
    """Outcome of one playlist aggregation.

    `videos[i].position == i` for every i. `failures` is empty when every
    requested enrichment succeeded.
    """

    playlist_id: str
    videos: List[VideoRecord] = field(default_factory=list)
    failures: List[EnrichmentFailure] = field(default_factory=list)
    page_count: int = 0
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures

    @property
    def failed_positions(self) -> List[int]:
        return sorted({failure.position for failure in self.failures})


# --- HTTP Models ---

class PlaylistRequest(BaseModel):
    """Parameters of a playlist aggregation request.

    Unset flags fall back to the configured defaults.
    """

    id: str = Field(
        ...,
        description="Playlist ID or a YouTube URL containing a 'list' parameter."
    )
    details: Optional[bool] = Field(None, description="Fetch title, statistics and duration.")
    comments: Optional[bool] = Field(None, description="Fetch top comments.")
    batch: Optional[bool] = Field(None, description="One batched video details call per page.")
    strict: Optional[bool] = Field(None, description="Fail the request on any enrichment failure.")
    bounded: Optional[bool] = Field(
        None,
        description="Wait for each page's enrichment before requesting the next page."
    )

    @field_validator("id")
    @classmethod
    def id_must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Playlist id is required")
        return v.strip()

    def to_options(self) -> EnrichmentOptions:
        return EnrichmentOptions.from_config(
            fetch_video_details=self.details,
            fetch_comments=self.comments,
            batch_video_details=self.batch,
            strict=self.strict,
            wait_per_page=self.bounded,
        )


class CommentResponse(BaseModel):
    author_name: str
    author_profile_image_url: str
    text: str
    like_count: str
    published_at: str


class VideoResponse(BaseModel):
    """One playlist entry as returned to HTTP callers."""

    id: str
    position: int
    url: str
    title: str
    channel_title: str
    duration: str = Field(..., description="ISO 8601 duration as returned by YouTube.")
    duration_seconds: Optional[int] = None
    view_count: str
    like_count: str
    dislike_count: str
    favorite_count: str
    comment_count: str
    top_comments: List[CommentResponse] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(
            id=record.video_id,
            position=record.position,
            url=record.url,
            title=record.title,
            channel_title=record.channel_title,
            duration=record.duration_raw,
            duration_seconds=record.duration_seconds,
            view_count=record.view_count,
            like_count=record.like_count,
            dislike_count=record.dislike_count,
            favorite_count=record.favorite_count,
            comment_count=record.comment_count,
            top_comments=[
                CommentResponse(
                    author_name=c.author_name,
                    author_profile_image_url=c.author_profile_image_url,
                    text=c.text,
                    like_count=c.like_count,
                    published_at=c.published_at,
                )
                for c in record.top_comments
            ],
        )


class FailureResponse(BaseModel):
    position: int
    video_id: str
    kind: str
    message: str
    status: Optional[int] = None


class PlaylistResponse(BaseModel):
    """Response of GET /playlist."""

    playlist_id: str
    video_count: int
    complete: bool = Field(
        ...,
        description="False when some enrichment calls failed; affected videos keep empty fields."
    )
    videos: List[VideoResponse]
    failures: List[FailureResponse] = Field(default_factory=list)
    page_count: int = 0
    processing_time_ms: Optional[float] = None
    api_call_count: Optional[int] = None
    api_quota_used: Optional[int] = None

    @classmethod
    def from_result(cls, result: AggregationResult) -> "PlaylistResponse":
        return cls(
            playlist_id=result.playlist_id,
            video_count=len(result.videos),
            complete=result.complete,
            videos=[VideoResponse.from_record(v) for v in result.videos],
            failures=[
                FailureResponse(
                    position=f.position,
                    video_id=f.video_id,
                    kind=f.kind,
                    message=f.message,
                    status=f.status,
                )
                for f in result.failures
            ],
            page_count=result.page_count,
            processing_time_ms=result.stats.get("processing_time_ms"),
            api_call_count=result.stats.get("api_calls_request"),
            api_quota_used=result.stats.get("api_quota_used_request"),
        )


class ErrorResponse(BaseModel):
    """Model for error responses."""

    detail: str = Field(..., description="Detailed error message.")
    error_code: Optional[str] = Field(None, description="Optional internal error code.")
