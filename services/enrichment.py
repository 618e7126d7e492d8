#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Concurrent enrichment of reserved playlist slots.

For every page handed over by the page walker, EnrichmentFanOut launches
one asyncio task per item per requested enrichment (video details,
comments), or a single batched video details task for the whole page.
Each task writes only the fields it owns into its own slot of the
ResultAggregator.

Upstream failures of a single task are recorded as EnrichmentFailure
entries (lenient mode) or promoted to AggregationError (strict mode).
Any other exception is a defect and aborts the aggregation.
"""

import asyncio
from typing import List, Sequence

from exceptions import AggregationError, ResourceNotFoundError, UpstreamError
from logging_config import StructuredLogger
from models import (ENRICHMENT_COMMENTS, ENRICHMENT_VIDEO_DETAILS, CommentRecord,
                    EnrichmentFailure, EnrichmentOptions, PlaylistItemRef, VideoDetails)
from services.aggregator import ResultAggregator
from services.fetch_client import FetchClient

logger = StructuredLogger(__name__)


class EnrichmentFanOut:
    """Launches and joins the enrichment tasks of one aggregation.

    The page walker owns one instance per aggregation. In bounded mode it
    joins each page's tasks with `join()` before fetching the next page; in
    unbounded mode tasks accumulate and `raise_for_failed()` / `join_all()`
    surface fatal task errors.
    """

    def __init__(self, client: FetchClient, aggregator: ResultAggregator,
                 options: EnrichmentOptions, request_id: str = ""):
        self.client = client
        self.aggregator = aggregator
        self.options = options
        self.request_id = request_id
        self.log_prefix = f"[REQ-{request_id}]" if request_id else ""
        self.failures: List[EnrichmentFailure] = []
        self._tasks: List[asyncio.Task] = []

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def launch_page(self, refs: Sequence[PlaylistItemRef]) -> List[asyncio.Task]:
        """Spawn the enrichment tasks for one page of already reserved slots.

        Args:
            refs: The page's items, in page order.

        Returns:
            list: The tasks created for this page (possibly empty).
        """
        tasks: List[asyncio.Task] = []
        options = self.options

        if options.fetch_video_details:
            if options.batch_video_details:
                if refs:
                    tasks.append(asyncio.create_task(
                        self._fetch_details_batch(list(refs)),
                        name=f"details_batch_{refs[0].position}"
                    ))
            else:
                for ref in refs:
                    tasks.append(asyncio.create_task(
                        self._fetch_details(ref),
                        name=f"details_{ref.position}_{ref.video_id}"
                    ))

        if options.fetch_comments:
            for ref in refs:
                tasks.append(asyncio.create_task(
                    self._fetch_comments(ref),
                    name=f"comments_{ref.position}_{ref.video_id}"
                ))

        self._tasks.extend(tasks)
        if tasks:
            logger.debug(
                f"{self.log_prefix} Launched {len(tasks)} enrichment task(s) for {len(refs)} item(s)",
                request_id=self.request_id,
                tasks=len(tasks),
                in_flight=self.in_flight,
            )
        return tasks

    # --- Workers ---

    async def _fetch_details(self, ref: PlaylistItemRef) -> None:
        if not ref.video_id:
            self._record_failure(ref, ENRICHMENT_VIDEO_DETAILS, UpstreamError("Playlist item has no video id"))
            return
        try:
            items = await self.client.get_video_details([ref.video_id])
            if not items:
                raise ResourceNotFoundError(f"Video {ref.video_id} not returned by upstream (private or deleted?)")
        except UpstreamError as e:
            self._record_failure(ref, ENRICHMENT_VIDEO_DETAILS, e)
            return
        self.aggregator.write_video_details(ref.position, VideoDetails.from_api_response(items[0]))

    async def _fetch_details_batch(self, refs: List[PlaylistItemRef]) -> None:
        """One videos.list call for a whole page.

        Response items are matched to requests by array index: item `i` is
        written to the slot of the `i`-th requested id.
        """
        requested = [ref for ref in refs if ref.video_id]
        for ref in refs:
            if not ref.video_id:
                self._record_failure(ref, ENRICHMENT_VIDEO_DETAILS, UpstreamError("Playlist item has no video id"))
        if not requested:
            return

        try:
            items = await self.client.get_video_details([ref.video_id for ref in requested])
        except UpstreamError as e:
            for ref in requested:
                self._record_failure(ref, ENRICHMENT_VIDEO_DETAILS, e)
            return

        if len(items) > len(requested):
            logger.warning(
                f"{self.log_prefix} Batched details returned {len(items)} items for {len(requested)} ids; ignoring the surplus",
                request_id=self.request_id,
                page_base=requested[0].position,
            )

        for index, ref in enumerate(requested):
            if index < len(items):
                self.aggregator.write_video_details(ref.position, VideoDetails.from_api_response(items[index]))
            else:
                self._record_failure(
                    ref, ENRICHMENT_VIDEO_DETAILS,
                    ResourceNotFoundError(f"Video {ref.video_id} missing from batched response")
                )

    async def _fetch_comments(self, ref: PlaylistItemRef) -> None:
        if not ref.video_id:
            self._record_failure(ref, ENRICHMENT_COMMENTS, UpstreamError("Playlist item has no video id"))
            return
        max_comments = self.options.max_comments
        try:
            items = await self.client.get_comments(ref.video_id, max_comments)
        except UpstreamError as e:
            self._record_failure(ref, ENRICHMENT_COMMENTS, e)
            return
        # Upstream relevance order is kept as is
        comments = [CommentRecord.from_api_response(item) for item in items[:max_comments]]
        self.aggregator.write_comments(ref.position, comments)

    def _record_failure(self, ref: PlaylistItemRef, kind: str, error: UpstreamError) -> None:
        """Record a lenient-mode failure, or raise AggregationError in strict mode."""
        if self.options.strict:
            logger.warning(
                f"{self.log_prefix} Strict mode: {kind} failed for position {ref.position} ({ref.video_id}): {error}",
                request_id=self.request_id, position=ref.position, kind=kind, status=error.status,
            )
            raise AggregationError(
                f"Enrichment '{kind}' failed for video {ref.video_id or '?'} at position {ref.position}: {error.message}",
                cause=error,
                stage=kind,
                position=ref.position,
            ) from error

        logger.warning(
            f"{self.log_prefix} {kind} failed for position {ref.position} ({ref.video_id}): {error}",
            request_id=self.request_id, position=ref.position, kind=kind, status=error.status,
        )
        self.failures.append(EnrichmentFailure(
            position=ref.position,
            video_id=ref.video_id,
            kind=kind,
            message=error.message,
            status=error.status,
            error_code=error.error_code,
        ))

    # --- Joining & cancellation ---

    async def join(self, tasks: Sequence[asyncio.Task]) -> None:
        """Wait for `tasks`; on the first error cancel every task of this fan-out and re-raise.

        Also cancels everything when the caller itself is cancelled.
        """
        if not tasks:
            return
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            await self.cancel_all()
            raise
        self._forget(tasks)

    async def join_all(self) -> None:
        """Wait for every task launched so far."""
        await self.join(list(self._tasks))

    def raise_for_failed(self) -> None:
        """Re-raise the error of the first finished task that failed.

        Used in unbounded mode before each page fetch so a strict-mode
        failure stops the walk without waiting for the final join.
        """
        finished = [task for task in self._tasks if task.done()]
        for task in finished:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        self._forget(finished)

    async def cancel_all(self) -> None:
        """Cancel all unfinished tasks and wait until they have stopped."""
        tasks = list(self._tasks)
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if tasks:
            # Collects results so no "exception was never retrieved" warnings are emitted
            await asyncio.gather(*tasks, return_exceptions=True)
        if pending:
            logger.info(
                f"{self.log_prefix} Cancelled {len(pending)} in-flight enrichment task(s)",
                request_id=self.request_id, cancelled=len(pending),
            )
        self._tasks.clear()

    def _forget(self, tasks: Sequence[asyncio.Task]) -> None:
        done = set(tasks)
        self._tasks = [task for task in self._tasks if task not in done]

    def sorted_failures(self) -> List[EnrichmentFailure]:
        return sorted(self.failures, key=lambda f: (f.position, f.kind))
