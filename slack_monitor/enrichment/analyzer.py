"""
One-message enrichment: prompt -> completion -> parse -> validate -> store.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from ..llm.completion_client import CompletionClient
from ..llm.prompts import build_prompt
from ..models import Analysis, CanonicalMessage
from ..services.message_store import MessageStore
from .parser import parse_analysis_text
from .validator import validate_analysis

logger = logging.getLogger(__name__)


class MessageAnalyzer:
    """
    Enriches a single message and writes its analysis back.

    Completion and store errors propagate (``CompletionServiceError``,
    ``MessageStoreError``); the caller decides whether to log and move on.
    Malformed completion text is not an error: it yields a partial analysis.
    """

    def __init__(self, completion_client: CompletionClient, store: MessageStore) -> None:
        self._completion_client = completion_client
        self._store = store

    async def analyze(self, message: CanonicalMessage, now: Optional[datetime] = None) -> Analysis:
        await self._store.mark_attempt(message.external_id, now)

        start = time.perf_counter()
        text = await self._completion_client.complete(build_prompt(message))
        outcome = parse_analysis_text(text)
        analysis = validate_analysis(outcome.draft, processed_at=now or datetime.now(timezone.utc))
        await self._store.update_analysis(message.external_id, analysis)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "[ENRICH] Analyzed %s (source=%s, priority=%s, deliverables=%s, diagnostics=%s, %.1f ms)",
            message.external_id,
            outcome.draft.source,
            analysis.priority.level,
            len(analysis.deliverables),
            len(outcome.diagnostics),
            elapsed_ms,
        )
        return analysis
