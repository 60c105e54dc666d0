"""
Background workers for message enrichment.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Optional

from ..enrichment.analyzer import MessageAnalyzer
from ..enrichment.scheduler import BacklogScheduler
from ..llm.completion_client import CompletionServiceError
from ..models import CanonicalMessage
from ..services.message_store import MessageStoreError

logger = logging.getLogger(__name__)


class EnrichmentWorker:
    """Analyzes freshly ingested messages off the ingestion path, one at a time."""

    def __init__(self, analyzer: MessageAnalyzer, queue_size: int = 100) -> None:
        self._analyzer = analyzer
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(0, int(queue_size)))
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._task:
            return
        self._task = asyncio.create_task(self._run(), name="enrichment_worker")
        logger.info("[ENRICH WORKER] Enrichment worker started.")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("[ENRICH WORKER] Enrichment worker stopped (%s queued messages left).", self.pending)

    def submit(self, message: CanonicalMessage) -> bool:
        """Queue a message for analysis. Returns False when the queue is full."""
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.process(message)
            finally:
                self._queue.task_done()

    async def process(self, message: CanonicalMessage) -> bool:
        try:
            await self._analyzer.analyze(message)
            return True
        except (CompletionServiceError, MessageStoreError) as exc:
            # Left unprocessed; the backlog sweep retries it.
            logger.error("[ENRICH WORKER] Enrichment failed for %s: %s", message.external_id, exc)
        except Exception:
            logger.exception("[ENRICH WORKER] Unexpected error enriching %s", message.external_id)
        return False


class BacklogSweeper:
    """Runs one backlog batch every ``interval`` seconds until stopped."""

    def __init__(self, scheduler: BacklogScheduler, interval: float = 300.0) -> None:
        self._scheduler = scheduler
        self._interval = max(1.0, float(interval))
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        if self._task:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="backlog_sweeper")
        logger.info("[BACKLOG] Backlog sweeper started (interval=%.0fs).", self._interval)

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("[BACKLOG] Backlog sweeper stopped.")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._scheduler.process_backlog_batch()
            except Exception:
                logger.exception("[BACKLOG] Backlog sweep failed")
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
