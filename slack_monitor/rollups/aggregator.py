"""
Pure folds from analyzed messages to dashboard views.

Inputs are sequences of ``CanonicalMessage`` in the store's stable order.
Nothing here mutates a message or talks to the store. Messages without an
analysis are skipped by every fold that reads analysis fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..models import (
    ACTIVE_DELIVERABLE_STATUSES,
    DELIVERABLE_STATUSES,
    URGENT_PRIORITY_LEVELS,
    CanonicalMessage,
    ChannelKind,
    isoformat,
)
from .models import (
    ChannelActivity,
    DeliverableState,
    SentimentSummary,
    TimeWindow,
    UrgentItem,
    WorkloadEntry,
)

POSITIVE_THRESHOLD = 0.1
NEGATIVE_THRESHOLD = -0.1
DEFAULT_URGENT_LIMIT = 10


def _analyzed(messages: Iterable[CanonicalMessage]) -> Iterable[CanonicalMessage]:
    return (message for message in messages if message.analysis is not None)


def _in_window(messages: Iterable[CanonicalMessage], window: Optional[TimeWindow]) -> Iterable[CanonicalMessage]:
    if window is None:
        return messages
    return (message for message in messages if window.contains(message.occurred_at))


def merge_deliverables(messages: Sequence[CanonicalMessage]) -> List[DeliverableState]:
    """
    Fold deliverable mentions into one current state per name.

    The mention on the message with the greatest ``occurredAt`` wins; on a
    tie the first one in input order is kept. Names match exactly. Result is
    ordered most recently updated first.
    """
    states: Dict[str, DeliverableState] = {}
    for message in _analyzed(messages):
        for mention in message.analysis.deliverables:
            current = states.get(mention.name)
            count = current.mention_count + 1 if current else 1
            if current is not None and message.occurred_at <= current.updated_at:
                current.mention_count = count
                continue
            states[mention.name] = DeliverableState(
                name=mention.name,
                status=mention.status,
                assignee=mention.assignee,
                deadline=mention.deadline,
                confidence=mention.confidence,
                channel_kind=message.channel_kind.value,
                message_id=message.external_id,
                author_name=message.author_name,
                updated_at=message.occurred_at,
                mention_count=count,
            )
    return sorted(states.values(), key=lambda state: state.updated_at, reverse=True)


def status_breakdown(states: Iterable[DeliverableState]) -> Dict[str, int]:
    """Count current states per status; every known status is present."""
    counts = {status: 0 for status in DELIVERABLE_STATUSES}
    for state in states:
        counts[state.status] = counts.get(state.status, 0) + 1
    return counts


def team_workload(messages: Sequence[CanonicalMessage]) -> List[WorkloadEntry]:
    """
    Group active-status mentions by assignee.

    ``active_count`` counts mentions (not distinct deliverables) and
    ``last_active`` is the latest message time among them. Busiest first.
    """
    entries: Dict[str, WorkloadEntry] = {}
    for message in _analyzed(messages):
        for mention in message.analysis.deliverables:
            if not mention.assignee or mention.status not in ACTIVE_DELIVERABLE_STATUSES:
                continue
            entry = entries.get(mention.assignee)
            if entry is None:
                entry = entries[mention.assignee] = WorkloadEntry(
                    assignee=mention.assignee,
                    active_count=0,
                    last_active=message.occurred_at,
                )
            entry.active_count += 1
            entry.last_active = max(entry.last_active, message.occurred_at)
            entry.deliverables.append(
                {"name": mention.name, "status": mention.status, "deadline": mention.deadline}
            )
    return sorted(
        entries.values(),
        key=lambda entry: (-entry.active_count, -entry.last_active.timestamp(), entry.assignee),
    )


def sentiment_summary(
    messages: Sequence[CanonicalMessage],
    channel_kind: ChannelKind,
    window: Optional[TimeWindow] = None,
) -> SentimentSummary:
    scores = [
        message.analysis.sentiment.score
        for message in _in_window(_analyzed(messages), window)
        if message.channel_kind == channel_kind
    ]
    summary = SentimentSummary(
        channel_kind=channel_kind.value,
        window_label=window.label if window else "all time",
    )
    if not scores:
        return summary
    summary.total = len(scores)
    summary.average = sum(scores) / len(scores)
    summary.positive = sum(1 for score in scores if score > POSITIVE_THRESHOLD)
    summary.negative = sum(1 for score in scores if score < NEGATIVE_THRESHOLD)
    return summary


def urgent_queue(
    messages: Sequence[CanonicalMessage],
    window: Optional[TimeWindow] = None,
    limit: int = DEFAULT_URGENT_LIMIT,
) -> List[UrgentItem]:
    """High/urgent messages, newest first, never more than ``limit``."""
    urgent = [
        message
        for message in _in_window(_analyzed(messages), window)
        if message.analysis.priority.level in URGENT_PRIORITY_LEVELS
    ]
    urgent.sort(key=lambda message: (message.occurred_at, message.external_id), reverse=True)
    return [
        UrgentItem(
            external_id=message.external_id,
            channel_kind=message.channel_kind.value,
            author_name=message.author_name,
            text=message.text,
            occurred_at=message.occurred_at,
            level=message.analysis.priority.level,
            reasons=list(message.analysis.priority.reasons),
        )
        for message in urgent[: max(0, limit)]
    ]


def channel_activity(
    messages: Sequence[CanonicalMessage],
    window: Optional[TimeWindow] = None,
) -> List[ChannelActivity]:
    """Message count, distinct authors and latest message per channel kind."""
    grouped: Dict[ChannelKind, List[CanonicalMessage]] = {}
    for message in _in_window(messages, window):
        grouped.setdefault(message.channel_kind, []).append(message)
    return [
        ChannelActivity(
            channel_kind=kind.value,
            message_count=len(grouped[kind]),
            unique_users=sorted({message.author_name for message in grouped[kind]}),
            last_activity=max(message.occurred_at for message in grouped[kind]),
        )
        for kind in ChannelKind
        if kind in grouped
    ]


def daily_digest(
    messages: Sequence[CanonicalMessage],
    window: TimeWindow,
    generated_at: datetime,
) -> Dict[str, Any]:
    """Per channel kind: volume, authors, deliverable updates and urgent items for one day."""
    summary = []
    for activity in channel_activity(messages, window):
        kind = ChannelKind(activity.channel_kind)
        day_messages = [
            message
            for message in _in_window(_analyzed(messages), window)
            if message.channel_kind == kind
        ]
        deliverable_updates = [
            {
                **mention.to_document(),
                "deadline": isoformat(mention.deadline),
                "messageId": message.external_id,
                "occurredAt": isoformat(message.occurred_at),
            }
            for message in day_messages
            for mention in message.analysis.deliverables
        ]
        urgent_items = [
            {
                "text": message.text,
                "user": message.author_name,
                "priority": message.analysis.priority.level,
            }
            for message in day_messages
            if message.analysis.priority.level in URGENT_PRIORITY_LEVELS
        ]
        summary.append(
            {
                **activity.to_dict(),
                "deliverableUpdates": deliverable_updates,
                "urgentItems": urgent_items,
            }
        )
    return {
        "date": window.label,
        "summary": summary,
        "generatedAt": isoformat(generated_at),
    }
