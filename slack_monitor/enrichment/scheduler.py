"""
Backlog batch policy: pick unenriched messages and analyze them one at a time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

from ..llm.completion_client import CompletionServiceError
from ..services.message_store import MessageStore, MessageStoreError
from .analyzer import MessageAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_CALL_DELAY_SECONDS = 1.0


@dataclass
class BacklogBatchResult:
    selected: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected": self.selected,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "failedIds": list(self.failed),
        }


class BacklogScheduler:
    """
    Runs one bounded pass over the enrichment backlog.

    Messages are processed strictly sequentially with ``call_delay_seconds``
    between completion calls. A failing message is logged and skipped; it
    stays unprocessed and is picked up again by a later pass. Concurrent
    calls to ``process_backlog_batch`` are serialized.
    """

    def __init__(
        self,
        analyzer: MessageAnalyzer,
        store: MessageStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        call_delay_seconds: float = DEFAULT_CALL_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._analyzer = analyzer
        self._store = store
        self.batch_size = max(1, int(batch_size))
        self.call_delay_seconds = max(0.0, float(call_delay_seconds))
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Dict[str, Any], analyzer: MessageAnalyzer, store: MessageStore) -> "BacklogScheduler":
        enrichment_cfg = config.get("enrichment", {})
        return cls(
            analyzer,
            store,
            batch_size=enrichment_cfg.get("batch_size", DEFAULT_BATCH_SIZE),
            call_delay_seconds=enrichment_cfg.get("call_delay_seconds", DEFAULT_CALL_DELAY_SECONDS),
        )

    async def process_backlog_batch(self) -> BacklogBatchResult:
        async with self._lock:
            return await self._process_batch()

    async def _process_batch(self) -> BacklogBatchResult:
        result = BacklogBatchResult()
        try:
            messages = await self._store.find_unprocessed(self.batch_size)
        except MessageStoreError as exc:
            logger.error("[BACKLOG] Could not load backlog: %s", exc)
            return result

        result.selected = len(messages)
        if not messages:
            logger.debug("[BACKLOG] Nothing to enrich")
            return result

        start = time.perf_counter()
        for index, message in enumerate(messages):
            if index:
                await self._sleep(self.call_delay_seconds)
            try:
                await self._analyzer.analyze(message)
                result.succeeded.append(message.external_id)
            except (CompletionServiceError, MessageStoreError) as exc:
                logger.error("[BACKLOG] Enrichment failed for %s: %s", message.external_id, exc)
                result.failed.append(message.external_id)
            except Exception:
                logger.exception("[BACKLOG] Unexpected error enriching %s", message.external_id)
                result.failed.append(message.external_id)

        logger.info(
            "[BACKLOG] Processed batch: %s/%s succeeded, %s failed (%.1f s)",
            len(result.succeeded),
            result.selected,
            len(result.failed),
            time.perf_counter() - start,
        )
        return result
