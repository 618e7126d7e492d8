"""
Tests for the HTTP routes.
"""
import unittest
import sys
import os
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from api.dependencies import get_aggregation_engine
from exceptions import AggregationError, InvalidInputError, QuotaExceededError, ResourceNotFoundError
from main import app
from models import AggregationResult, EnrichmentFailure, PlaylistItemRef, VideoDetails, VideoRecord


def _result(with_failure=False):
    videos = [
        VideoRecord.skeleton(PlaylistItemRef("a", 0)).with_details(VideoDetails(title="First", view_count="10")),
        VideoRecord.skeleton(PlaylistItemRef("b", 1)),
    ]
    failures = []
    if with_failure:
        failures.append(EnrichmentFailure(position=1, video_id="b", kind="video_details", message="boom", status=500))
    return AggregationResult(playlist_id="PLabc", videos=videos, failures=failures, page_count=1,
                             stats={"processing_time_ms": 5.0, "api_calls_request": 5})


class TestPlaylistRoute(unittest.TestCase):
    """Test GET /playlist."""

    def setUp(self):
        self.engine = MagicMock()
        self.engine.aggregate = AsyncMock(return_value=_result())
        app.dependency_overrides[get_aggregation_engine] = lambda: self.engine
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)

    def test_complete_result(self):
        response = self.client.get("/playlist", params={"id": "PLabc"})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["complete"])
        self.assertEqual(data["video_count"], 2)
        self.assertEqual([v["id"] for v in data["videos"]], ["a", "b"])
        self.assertEqual(data["videos"][0]["title"], "First")
        self.assertEqual(data["videos"][0]["view_count"], "10")
        self.assertEqual(data["api_call_count"], 5)
        self.assertEqual(response.headers["X-Content-Type-Options"], "nosniff")

    def test_flags_reach_the_engine(self):
        self.client.get("/playlist", params={"id": "PLabc", "batch": "true", "comments": "false",
                                             "strict": "true", "bounded": "false"})

        playlist_id, options = self.engine.aggregate.call_args.args
        self.assertEqual(playlist_id, "PLabc")
        self.assertTrue(options.batch_video_details)
        self.assertFalse(options.fetch_comments)
        self.assertTrue(options.strict)
        self.assertFalse(options.wait_per_page)

    def test_partial_result(self):
        self.engine.aggregate.return_value = _result(with_failure=True)

        response = self.client.get("/playlist", params={"id": "PLabc"})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertFalse(data["complete"])
        self.assertEqual(data["failures"], [
            {"position": 1, "video_id": "b", "kind": "video_details", "message": "boom", "status": 500}
        ])

    def test_unknown_playlist(self):
        self.engine.aggregate.side_effect = AggregationError(
            "Failed to fetch page 1", cause=ResourceNotFoundError("Playlist not found")
        )

        response = self.client.get("/playlist", params={"id": "PLmissing"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.headers["X-Error-Code"], "AGGREGATION_FAILED")
        self.assertEqual(response.json()["detail"], "Failed to fetch page 1")

    def test_quota_exhausted(self):
        self.engine.aggregate.side_effect = AggregationError("Quota", cause=QuotaExceededError())

        response = self.client.get("/playlist", params={"id": "PLabc"})

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.headers["Retry-After"], "3600")

    def test_invalid_input(self):
        self.engine.aggregate.side_effect = InvalidInputError("Not a playlist id or playlist URL: 'x!'")

        response = self.client.get("/playlist", params={"id": "x!"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.headers["X-Error-Code"], "INVALID_INPUT")

    def test_blank_id(self):
        response = self.client.get("/playlist", params={"id": "   "})

        self.assertEqual(response.status_code, 400)
        self.engine.aggregate.assert_not_called()

    def test_missing_id(self):
        response = self.client.get("/playlist")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.headers["X-Error-Code"], "INVALID_INPUT")
        self.engine.aggregate.assert_not_called()


class TestHealthRoute(unittest.TestCase):
    """Test GET /health."""

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_health(self):
        engine = MagicMock()
        engine.get_global_stats = AsyncMock(return_value={"total_requests_processed": 3})
        app.dependency_overrides[get_aggregation_engine] = lambda: engine

        response = TestClient(app).get("/health")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["statistics"], {"total_requests_processed": 3})
        self.assertIn("total_requests", data["requests"])

    def test_uninitialized_engine(self):
        """Without a configured API key the routes answer 503."""
        client = TestClient(app)

        response = client.get("/playlist", params={"id": "PLabc"})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.headers["X-Error-Code"], "SERVICE_UNAVAILABLE_ENGINE")
        self.assertEqual(client.get("/health").status_code, 503)


if __name__ == '__main__':
    unittest.main()
