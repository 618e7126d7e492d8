#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Position-indexed result collection for one playlist aggregation.

The page walker reserves one slot per playlist item, in page order, before
any enrichment task for that page exists. Enrichment tasks then replace only
their own slot, addressed by absolute position, so final ordering does not
depend on the order in which tasks complete.
"""

from typing import List, Sequence

from exceptions import InvalidSlotError
from logging_config import StructuredLogger
from models import CommentRecord, PlaylistItemRef, VideoDetails, VideoRecord

logger = StructuredLogger(__name__)


class ResultAggregator:
    """Owns the growing list of VideoRecord slots.

    Slots are only appended (one page at a time) and never reordered or
    compacted. Writes are patch-and-replace of a single slot; in one event
    loop no other coroutine can interleave between the read and the store,
    so no lock is needed.
    """

    def __init__(self, playlist_id: str = ""):
        self.playlist_id = playlist_id
        self._slots: List[VideoRecord] = []
        self._completed = False

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def completed(self) -> bool:
        return self._completed

    def reserve(self, position: int, skeleton: VideoRecord) -> None:
        """Reserve the slot for `position`, holding `skeleton` until enriched.

        Positions must be reserved exactly once and in increasing order, so
        `position` must equal the current length.

        Raises:
            InvalidSlotError: On an out-of-order or repeated reservation, a
                skeleton for another position, or a reservation after completion.
        """
        if self._completed:
            raise InvalidSlotError(f"Cannot reserve position {position}: aggregation already completed")
        if position != len(self._slots):
            raise InvalidSlotError(
                f"Slot reservations must be contiguous: expected position {len(self._slots)}, got {position}"
            )
        if skeleton.position != position:
            raise InvalidSlotError(
                f"Skeleton for position {skeleton.position} reserved at position {position}"
            )
        self._slots.append(skeleton)

    def reserve_page(self, refs: Sequence[PlaylistItemRef]) -> None:
        """Reserve one page's worth of trailing slots."""
        for ref in refs:
            self.reserve(ref.position, VideoRecord.skeleton(ref))
        logger.debug(
            f"Reserved {len(refs)} slot(s), collection size now {len(self._slots)}",
            playlist_id=self.playlist_id,
            reserved=len(refs),
            size=len(self._slots),
        )

    def _reserved_slot(self, position: int) -> VideoRecord:
        if position < 0 or position >= len(self._slots):
            raise InvalidSlotError(
                f"Write to position {position} outside reserved range [0, {len(self._slots)})"
            )
        return self._slots[position]

    def write_video_details(self, position: int, details: VideoDetails) -> None:
        """Patch the metadata fields of the record at `position`.

        Raises:
            InvalidSlotError: If `position` was never reserved.
        """
        record = self._reserved_slot(position)
        self._slots[position] = record.with_details(details)

    def write_comments(self, position: int, comments: Sequence[CommentRecord]) -> None:
        """Patch the top comments of the record at `position`.

        Raises:
            InvalidSlotError: If `position` was never reserved.
        """
        record = self._reserved_slot(position)
        self._slots[position] = record.with_comments(tuple(comments))

    def get(self, position: int) -> VideoRecord:
        return self._reserved_slot(position)

    def mark_complete(self) -> None:
        """Called by the page walker once the cursor is exhausted and enrichment has settled."""
        self._completed = True

    def snapshot(self) -> List[VideoRecord]:
        """Return the records in position order.

        Raises:
            RuntimeError: If the aggregation has not completed.
        """
        if not self._completed:
            raise RuntimeError("Result snapshot requested before the aggregation completed")
        return list(self._slots)

    def discard(self) -> None:
        """Drop all slots of an aborted aggregation."""
        self._slots.clear()
        self._completed = False
