"""
Tests for the ResultAggregator slot collection.
"""
import unittest
import sys
import os

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from exceptions import InvalidSlotError
from models import CommentRecord, PlaylistItemRef, VideoDetails, VideoRecord
from services.aggregator import ResultAggregator


def _refs(video_ids, base=0):
    return [PlaylistItemRef(video_id=vid, position=base + i) for i, vid in enumerate(video_ids)]


class TestReservation(unittest.TestCase):
    """Test slot reservation."""

    def setUp(self):
        self.aggregator = ResultAggregator("PLtest")

    def test_reserve_page_appends_skeletons(self):
        """Reserved slots hold skeletons with id, position and url."""
        self.aggregator.reserve_page(_refs(["a", "b", "c"]))
        self.assertEqual(len(self.aggregator), 3)
        record = self.aggregator.get(1)
        self.assertEqual(record.video_id, "b")
        self.assertEqual(record.position, 1)
        self.assertTrue(record.url.endswith("watch?v=b"))
        self.assertEqual(record.title, "")
        self.assertFalse(record.details_enriched)

    def test_pages_are_contiguous(self):
        self.aggregator.reserve_page(_refs(["a", "b"]))
        self.aggregator.reserve_page(_refs(["c"], base=2))
        self.aggregator.mark_complete()
        self.assertEqual([r.position for r in self.aggregator.snapshot()], [0, 1, 2])

    def test_out_of_order_reservation_raises(self):
        with self.assertRaises(InvalidSlotError):
            self.aggregator.reserve(1, VideoRecord.skeleton(PlaylistItemRef("a", 1)))

    def test_repeated_reservation_raises(self):
        self.aggregator.reserve(0, VideoRecord.skeleton(PlaylistItemRef("a", 0)))
        with self.assertRaises(InvalidSlotError):
            self.aggregator.reserve(0, VideoRecord.skeleton(PlaylistItemRef("a", 0)))

    def test_mismatched_skeleton_raises(self):
        with self.assertRaises(InvalidSlotError):
            self.aggregator.reserve(0, VideoRecord.skeleton(PlaylistItemRef("a", 5)))

    def test_reserve_after_completion_raises(self):
        self.aggregator.mark_complete()
        with self.assertRaises(InvalidSlotError):
            self.aggregator.reserve_page(_refs(["a"]))

    def test_empty_video_id_keeps_slot_without_url(self):
        self.aggregator.reserve_page(_refs(["", "b"]))
        self.assertEqual(self.aggregator.get(0).video_id, "")
        self.assertEqual(self.aggregator.get(0).url, "")


class TestWrites(unittest.TestCase):
    """Test slot writes."""

    def setUp(self):
        self.aggregator = ResultAggregator("PLtest")
        self.aggregator.reserve_page(_refs(["a", "b"]))

    def test_write_video_details_patches_only_metadata(self):
        self.aggregator.write_comments(0, [CommentRecord(text="first")])
        self.aggregator.write_video_details(0, VideoDetails(title="Title A", view_count="10"))
        record = self.aggregator.get(0)
        self.assertEqual(record.title, "Title A")
        self.assertEqual(record.view_count, "10")
        self.assertTrue(record.details_enriched)
        self.assertEqual(record.top_comments[0].text, "first")
        self.assertTrue(record.comments_enriched)
        self.assertEqual(record.video_id, "a")

    def test_writes_do_not_touch_other_slots(self):
        self.aggregator.write_video_details(1, VideoDetails(title="Title B"))
        self.assertEqual(self.aggregator.get(0).title, "")
        self.assertEqual(self.aggregator.get(1).title, "Title B")

    def test_write_out_of_range_raises(self):
        """Writes beyond the reserved range or before position 0 are rejected."""
        with self.assertRaises(InvalidSlotError):
            self.aggregator.write_video_details(2, VideoDetails(title="x"))
        with self.assertRaises(InvalidSlotError):
            self.aggregator.write_comments(-1, [])

    def test_write_before_any_reservation_raises(self):
        aggregator = ResultAggregator()
        with self.assertRaises(InvalidSlotError):
            aggregator.write_comments(0, [])


class TestCompletion(unittest.TestCase):
    """Test snapshot, completion and discard."""

    def test_snapshot_before_completion_raises(self):
        aggregator = ResultAggregator()
        aggregator.reserve_page(_refs(["a"]))
        with self.assertRaises(RuntimeError):
            aggregator.snapshot()

    def test_snapshot_is_a_copy(self):
        aggregator = ResultAggregator()
        aggregator.reserve_page(_refs(["a"]))
        aggregator.mark_complete()
        videos = aggregator.snapshot()
        videos.clear()
        self.assertEqual(len(aggregator.snapshot()), 1)

    def test_empty_playlist_snapshot(self):
        aggregator = ResultAggregator()
        aggregator.mark_complete()
        self.assertTrue(aggregator.completed)
        self.assertEqual(aggregator.snapshot(), [])

    def test_discard_drops_slots(self):
        aggregator = ResultAggregator()
        aggregator.reserve_page(_refs(["a", "b"]))
        aggregator.discard()
        self.assertEqual(len(aggregator), 0)
        self.assertFalse(aggregator.completed)
        with self.assertRaises(InvalidSlotError):
            aggregator.get(0)


if __name__ == '__main__':
    unittest.main()
