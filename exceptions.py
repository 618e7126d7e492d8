#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Custom exception classes and error handling utilities for Tubecollate.

Provides the error taxonomy of the aggregation pipeline (input, upstream,
aggregation and internal slot errors) and a helper converting any of them
into a consistent FastAPI error response.
"""

from typing import Optional
from fastapi import HTTPException, status


# --- Base Exception Classes ---

class AppBaseError(Exception):
    """Base class for all application-specific exceptions.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        http_status_code: HTTP status code to use in API responses
        retry_after: Optional seconds to wait before retrying (for rate limits)
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                http_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
                retry_after: Optional[int] = None):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            http_status_code: HTTP status code to use in API responses
            retry_after: Optional seconds to wait before retrying
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.http_status_code = http_status_code
        self.retry_after = retry_after
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        """Convert this exception to a FastAPI HTTPException.

        Returns:
            HTTPException: FastAPI exception with appropriate status and headers
        """
        headers = {"X-Error-Code": self.error_code}
        if self.retry_after:
            headers["Retry-After"] = str(self.retry_after)

        return HTTPException(
            status_code=self.http_status_code,
            detail=self.message,
            headers=headers
        )


class CriticalError(AppBaseError):
    """Base class for non-recoverable errors that indicate a serious problem."""
    pass


# --- Input & Configuration Exceptions ---

class InvalidInputError(AppBaseError):
    """Raised when the playlist identifier or options are missing or malformed."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(
            message=message,
            error_code="INVALID_INPUT",
            http_status_code=status.HTTP_400_BAD_REQUEST
        )


class APIConfigurationError(CriticalError):
    """Raised when there's an issue with the API configuration."""

    def __init__(self, message: str = "API configuration error"):
        super().__init__(
            message=message,
            error_code="API_CONFIG_ERROR",
            http_status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


# --- Upstream Exceptions ---

class UpstreamError(AppBaseError):
    """Raised when a call to the YouTube API fails.

    Covers HTTP errors, undecodable responses and transport failures.

    Attributes:
        status: HTTP status returned by the upstream API, or None when the
                failure happened before a response was received.
    """

    def __init__(self, message: str = "YouTube API request failed", status_code: Optional[int] = None,
                 error_code: str = "UPSTREAM_ERROR",
                 http_status_code: int = status.HTTP_502_BAD_GATEWAY,
                 retry_after: Optional[int] = None):
        self.status = status_code
        super().__init__(
            message=message,
            error_code=error_code,
            http_status_code=http_status_code,
            retry_after=retry_after
        )


class ResourceNotFoundError(UpstreamError):
    """Raised when a requested YouTube resource cannot be found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="RESOURCE_NOT_FOUND",
            http_status_code=status.HTTP_404_NOT_FOUND
        )


class QuotaExceededError(UpstreamError):
    """Raised when the YouTube API quota has been exhausted."""

    def __init__(self, message: str = "YouTube API quota exceeded"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="QUOTA_EXCEEDED",
            http_status_code=status.HTTP_403_FORBIDDEN,
            retry_after=3600  # Suggest retry after 1 hour
        )


class RateLimitedError(UpstreamError):
    """Raised when the YouTube API answers 429 Too Many Requests."""

    def __init__(self, message: str = "API rate limit reached", retry_after: int = 30):
        super().__init__(
            message=message,
            status_code=429,
            error_code="RATE_LIMITED",
            http_status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            retry_after=retry_after
        )


class TimeoutExceededError(UpstreamError):
    """Raised when an upstream call does not answer in time."""

    def __init__(self, message: str = "Operation timed out"):
        super().__init__(
            message=message,
            status_code=None,
            error_code="TIMEOUT",
            http_status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            retry_after=10
        )


# --- Pipeline Exceptions ---

class AggregationError(AppBaseError):
    """Raised when a playlist aggregation fails as a whole.

    No partial result accompanies this error. The HTTP status mirrors the
    cause when the cause is one of ours (404 unknown playlist, 403 quota,
    504 timeout), otherwise 502.

    Attributes:
        cause: The exception that aborted the aggregation.
        stage: "page" for a playlist page fetch, "video_details" or
               "comments" for a strict-mode enrichment failure.
        position: Playlist position of the failed item, if any.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 stage: str = "page", position: Optional[int] = None):
        self.cause = cause
        self.stage = stage
        self.position = position
        if isinstance(cause, AppBaseError):
            http_status_code = cause.http_status_code
            retry_after = cause.retry_after
        else:
            http_status_code = status.HTTP_502_BAD_GATEWAY
            retry_after = None
        super().__init__(
            message=message,
            error_code="AGGREGATION_FAILED",
            http_status_code=http_status_code,
            retry_after=retry_after
        )


class InvalidSlotError(CriticalError):
    """Raised on a write to a result slot that was never reserved or is out of range.

    Indicates a defect in the fan-out logic; never handled by the pipeline.
    """

    def __init__(self, message: str = "Invalid result slot"):
        super().__init__(
            message=message,
            error_code="INVALID_SLOT",
            http_status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


# --- Error Handling Utilities ---

def handle_exception(exception: Exception) -> HTTPException:
    """Convert any exception to an appropriate HTTPException.

    Args:
        exception: The exception to handle

    Returns:
        HTTPException: FastAPI exception with appropriate status and headers
    """
    if isinstance(exception, AppBaseError):
        # Our custom exceptions already know how to convert themselves
        return exception.to_http_exception()

    elif isinstance(exception, ValueError):
        # Treat ValueError as InvalidInputError
        return InvalidInputError(str(exception)).to_http_exception()

    elif isinstance(exception, HTTPException):
        # Already a FastAPI HTTPException, just return it
        return exception

    else:
        # Unknown exception, treat as internal server error
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {type(exception).__name__}",
            headers={"X-Error-Code": "INTERNAL_SERVER_ERROR"}
        )
