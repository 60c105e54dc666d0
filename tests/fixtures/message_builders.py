"""
Builders for canonical messages, analyses and stub collaborators.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from slack_monitor.models import (
    Analysis,
    CanonicalMessage,
    ChannelKind,
    DeliverableMention,
    Priority,
    Sentiment,
)
from slack_monitor.services.message_store import MessageStore

from tests.fixtures.mongo_fakes import FakeClient, FakeCollection


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


def make_analysis(
    *,
    score: float = 0.0,
    level: str = "low",
    deliverables: Optional[List[DeliverableMention]] = None,
) -> Analysis:
    return Analysis(
        processed=True,
        processed_at=at(23),
        sentiment=Sentiment(score=score, label="neutral", confidence=0.5),
        priority=Priority(level=level, reasons=[]),
        deliverables=list(deliverables or []),
    )


def make_message(
    external_id: str,
    occurred_at: datetime,
    *,
    kind: ChannelKind = ChannelKind.MAIN,
    author: str = "Alice",
    text: str = "status update",
    analysis: Optional[Analysis] = None,
) -> CanonicalMessage:
    return CanonicalMessage(
        external_id=external_id,
        channel_id=f"C-{kind.value}",
        channel_kind=kind,
        author_id=f"U-{author.lower()}",
        author_name=author,
        text=text,
        occurred_at=occurred_at,
        analysis=analysis,
    )


def make_store(collection: Optional[FakeCollection] = None) -> MessageStore:
    collection = collection or FakeCollection()
    config = {"mongo": {"uri": "mongodb://127.0.0.1:27017", "database": "test-db", "collection": "messages"}}
    return MessageStore(config=config, client=FakeClient(collection))


class StubCompletionClient:
    """Returns canned completions in order; an Exception entry is raised instead."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        return None
