"""
Tests for the exceptions module.
"""
import unittest
import sys
import os
from fastapi import HTTPException

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from exceptions import (
    AggregationError, AppBaseError, APIConfigurationError, CriticalError, InvalidInputError,
    InvalidSlotError, QuotaExceededError, RateLimitedError, ResourceNotFoundError,
    TimeoutExceededError, UpstreamError, handle_exception
)


class TestAppBaseError(unittest.TestCase):
    """Test cases for the AppBaseError class."""

    def test_app_base_error_defaults(self):
        """Test the default values of AppBaseError."""
        error = AppBaseError("Test error")
        self.assertEqual(str(error), "Test error")
        self.assertEqual(error.error_code, "APPBASEERROR")
        self.assertEqual(error.http_status_code, 500)
        self.assertIsNone(error.retry_after)

    def test_to_http_exception_headers(self):
        error = AppBaseError("Slow down", error_code="SLOW", http_status_code=429, retry_after=30)
        http_exception = error.to_http_exception()
        self.assertEqual(http_exception.status_code, 429)
        self.assertEqual(http_exception.headers["X-Error-Code"], "SLOW")
        self.assertEqual(http_exception.headers["Retry-After"], "30")


class TestUpstreamErrors(unittest.TestCase):
    """Test cases for the upstream error family."""

    def test_upstream_error_keeps_status(self):
        error = UpstreamError("boom", status_code=500)
        self.assertEqual(error.status, 500)
        self.assertEqual(error.error_code, "UPSTREAM_ERROR")
        self.assertEqual(error.http_status_code, 502)

    def test_upstream_error_without_response(self):
        error = UpstreamError("connection reset")
        self.assertIsNone(error.status)

    def test_subclasses(self):
        """Each subclass is an UpstreamError with its own status."""
        cases = [
            (ResourceNotFoundError("x"), 404, 404, "RESOURCE_NOT_FOUND", None),
            (QuotaExceededError("x"), 403, 403, "QUOTA_EXCEEDED", 3600),
            (RateLimitedError("x"), 429, 429, "RATE_LIMITED", 30),
            (TimeoutExceededError("x"), None, 504, "TIMEOUT", 10),
        ]
        for error, upstream_status, http_status, code, retry_after in cases:
            with self.subTest(error=type(error).__name__):
                self.assertIsInstance(error, UpstreamError)
                self.assertEqual(error.status, upstream_status)
                self.assertEqual(error.http_status_code, http_status)
                self.assertEqual(error.error_code, code)
                self.assertEqual(error.retry_after, retry_after)


class TestPipelineErrors(unittest.TestCase):
    """Test cases for AggregationError and InvalidSlotError."""

    def test_aggregation_error_mirrors_cause(self):
        cause = ResourceNotFoundError("Playlist not found")
        error = AggregationError("Page 1 failed", cause=cause)
        self.assertIs(error.cause, cause)
        self.assertEqual(error.stage, "page")
        self.assertIsNone(error.position)
        self.assertEqual(error.http_status_code, 404)
        self.assertEqual(error.error_code, "AGGREGATION_FAILED")

    def test_aggregation_error_quota_cause_keeps_retry_after(self):
        error = AggregationError("Quota", cause=QuotaExceededError())
        self.assertEqual(error.http_status_code, 403)
        self.assertEqual(error.retry_after, 3600)

    def test_aggregation_error_foreign_cause_is_bad_gateway(self):
        error = AggregationError("Broken", cause=RuntimeError("x"), stage="comments", position=7)
        self.assertEqual(error.http_status_code, 502)
        self.assertEqual(error.stage, "comments")
        self.assertEqual(error.position, 7)

    def test_invalid_slot_error_is_critical(self):
        error = InvalidSlotError("Write to position 3 outside reserved range")
        self.assertIsInstance(error, CriticalError)
        self.assertEqual(error.error_code, "INVALID_SLOT")
        self.assertEqual(error.http_status_code, 500)

    def test_api_configuration_error(self):
        error = APIConfigurationError("API configuration error")
        self.assertIsInstance(error, CriticalError)
        self.assertEqual(error.error_code, "API_CONFIG_ERROR")
        self.assertEqual(error.http_status_code, 503)


class TestHandleException(unittest.TestCase):
    """Test cases for the handle_exception function."""

    def test_handle_invalid_input(self):
        http_exception = handle_exception(InvalidInputError("Playlist id is required."))
        self.assertIsInstance(http_exception, HTTPException)
        self.assertEqual(http_exception.status_code, 400)
        self.assertEqual(http_exception.headers["X-Error-Code"], "INVALID_INPUT")

    def test_handle_aggregation_error(self):
        error = AggregationError("Page failed", cause=TimeoutExceededError("slow"))
        http_exception = handle_exception(error)
        self.assertEqual(http_exception.status_code, 504)
        self.assertEqual(http_exception.detail, "Page failed")
        self.assertEqual(http_exception.headers["Retry-After"], "10")

    def test_handle_http_exception(self):
        """Test handling an HTTPException."""
        http_exception = HTTPException(status_code=404, detail="Not found")
        self.assertIs(handle_exception(http_exception), http_exception)

    def test_handle_value_error(self):
        """Test handling a ValueError."""
        http_exception = handle_exception(ValueError("Invalid value"))
        self.assertEqual(http_exception.status_code, 400)
        self.assertEqual(http_exception.detail, "Invalid value")

    def test_handle_generic_exception(self):
        """Test handling a generic Exception."""
        http_exception = handle_exception(Exception("Generic error"))
        self.assertEqual(http_exception.status_code, 500)
        self.assertEqual(http_exception.detail, "Internal server error: Exception")
        self.assertEqual(http_exception.headers["X-Error-Code"], "INTERNAL_SERVER_ERROR")


if __name__ == '__main__':
    unittest.main()
