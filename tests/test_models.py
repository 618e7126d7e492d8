"""
Tests for the pipeline records and HTTP models.
"""
import unittest
import sys
import os

from pydantic import ValidationError

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fake_client import make_comment_item, make_video_item
from models import (AggregationResult, CommentRecord, EnrichmentFailure, EnrichmentOptions,
                    PlaylistItemRef, PlaylistRequest, PlaylistResponse, VideoDetails, VideoRecord)


class TestRecords(unittest.TestCase):
    """Test construction of records from API items."""

    def test_video_details_from_api_response(self):
        details = VideoDetails.from_api_response(make_video_item("abc"))
        self.assertEqual(details.title, "Title abc")
        self.assertEqual(details.channel_title, "Channel")
        self.assertEqual(details.duration_raw, "PT1M30S")
        # Counters stay opaque strings, even past 64 bits
        self.assertEqual(details.view_count, "123456789012345678901")
        self.assertEqual(details.dislike_count, "")

    def test_hidden_statistics_stay_empty(self):
        details = VideoDetails.from_api_response({"snippet": {"title": "x"}})
        self.assertEqual(details.like_count, "")
        self.assertEqual(details.duration_raw, "")

    def test_comment_record_from_api_response(self):
        comment = CommentRecord.from_api_response(make_comment_item("abc", 4))
        self.assertEqual(comment.author_name, "author4")
        self.assertEqual(comment.text, "comment 4 on abc")
        self.assertEqual(comment.like_count, "4")
        self.assertEqual(comment.published_at, "2020-01-01T00:00:00Z")

    def test_comment_record_falls_back_to_text_display(self):
        item = {"snippet": {"topLevelComment": {"snippet": {"textDisplay": "shown"}}}}
        self.assertEqual(CommentRecord.from_api_response(item).text, "shown")

    def test_skeleton_and_patches(self):
        skeleton = VideoRecord.skeleton(PlaylistItemRef(video_id="abc", position=4))
        self.assertEqual(skeleton.url, "https://www.youtube.com/watch?v=abc")
        enriched = skeleton.with_details(VideoDetails(title="T")).with_comments([CommentRecord(text="c")])
        self.assertEqual(enriched.position, 4)
        self.assertEqual(enriched.title, "T")
        self.assertIsInstance(enriched.top_comments, tuple)
        self.assertTrue(enriched.details_enriched and enriched.comments_enriched)
        self.assertEqual(skeleton.title, "")

    def test_duration_seconds(self):
        record = VideoRecord(video_id="a", position=0, duration_raw="PT1H2M3S")
        self.assertEqual(record.duration_seconds, 3723)
        self.assertIsNone(VideoRecord(video_id="a", position=0).duration_seconds)
        self.assertIsNone(VideoRecord(video_id="a", position=0, duration_raw="garbage").duration_seconds)


class TestOptions(unittest.TestCase):
    """Test option construction from configured defaults."""

    def test_from_config_ignores_none_overrides(self):
        options = EnrichmentOptions.from_config(strict=None, batch_video_details=True)
        self.assertTrue(options.batch_video_details)
        self.assertEqual(options.strict, EnrichmentOptions.from_config().strict)

    def test_playlist_request_to_options(self):
        request = PlaylistRequest(id="  PLabc ", comments=False, bounded=False)
        self.assertEqual(request.id, "PLabc")
        options = request.to_options()
        self.assertFalse(options.fetch_comments)
        self.assertFalse(options.wait_per_page)

    def test_playlist_request_rejects_blank_id(self):
        with self.assertRaises(ValidationError):
            PlaylistRequest(id="   ")


class TestResponses(unittest.TestCase):
    """Test AggregationResult and its HTTP rendering."""

    def _result(self):
        videos = [
            VideoRecord.skeleton(PlaylistItemRef("a", 0)).with_details(
                VideoDetails.from_api_response(make_video_item("a"))
            ),
            VideoRecord.skeleton(PlaylistItemRef("b", 1)),
        ]
        failures = [
            EnrichmentFailure(position=1, video_id="b", kind="video_details", message="boom", status=500),
            EnrichmentFailure(position=1, video_id="b", kind="comments", message="disabled", status=403),
        ]
        return AggregationResult(
            playlist_id="PLabc", videos=videos, failures=failures, page_count=1,
            stats={"processing_time_ms": 12.5, "api_calls_request": 3, "api_quota_used_request": 3},
        )

    def test_result_flags(self):
        result = self._result()
        self.assertFalse(result.complete)
        self.assertEqual(result.failed_positions, [1])
        self.assertTrue(AggregationResult(playlist_id="PLabc").complete)

    def test_playlist_response_from_result(self):
        response = PlaylistResponse.from_result(self._result())
        self.assertEqual(response.video_count, 2)
        self.assertFalse(response.complete)
        self.assertEqual(response.videos[0].duration, "PT1M30S")
        self.assertEqual(response.videos[0].duration_seconds, 90)
        self.assertIsNone(response.videos[1].duration_seconds)
        self.assertEqual(response.failures[1].kind, "comments")
        self.assertEqual(response.api_call_count, 3)
        self.assertEqual(response.processing_time_ms, 12.5)

        data = response.model_dump()
        self.assertEqual([v["position"] for v in data["videos"]], [0, 1])


if __name__ == '__main__':
    unittest.main()
