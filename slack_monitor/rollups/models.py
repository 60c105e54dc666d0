from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from ..models import isoformat


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


@dataclass
class TimeWindow:
    """
    Closed interval ``[start, end]`` used to filter messages by ``occurredAt``.

    ``today`` and ``trailing`` are kept as distinct windows: the dashboard's
    activity counts start at local midnight while sentiment and urgent items
    look back a fixed number of hours.
    """

    start: datetime
    end: datetime
    label: str

    @classmethod
    def today(cls, tz: Optional[tzinfo] = None, now: Optional[datetime] = None) -> "TimeWindow":
        tz = tz or timezone.utc
        now = (now or datetime.now(timezone.utc)).astimezone(tz)
        start = datetime.combine(now.date(), time.min, tzinfo=tz)
        return cls(start=start.astimezone(timezone.utc), end=now.astimezone(timezone.utc), label="today")

    @classmethod
    def trailing(cls, hours: float = 24, now: Optional[datetime] = None) -> "TimeWindow":
        now = now or datetime.now(timezone.utc)
        return cls(start=now - timedelta(hours=hours), end=now, label=f"last {hours:g} hours")

    @classmethod
    def for_day(cls, day: date, tz: Optional[tzinfo] = None) -> "TimeWindow":
        tz = tz or timezone.utc
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = datetime.combine(day, time.max, tzinfo=tz)
        return cls(
            start=start.astimezone(timezone.utc),
            end=end.astimezone(timezone.utc),
            label=day.isoformat(),
        )

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class DeliverableState:
    """Current state of one deliverable: its latest mention by message time."""

    name: str
    status: str
    assignee: Optional[str]
    deadline: Optional[datetime]
    confidence: float
    channel_kind: str
    message_id: str
    author_name: str
    updated_at: datetime
    mention_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "assignee": self.assignee,
            "deadline": isoformat(self.deadline),
            "confidence": self.confidence,
            "channelKind": self.channel_kind,
            "messageId": self.message_id,
            "authorName": self.author_name,
            "updatedAt": isoformat(self.updated_at),
            "mentionCount": self.mention_count,
        }


@dataclass
class WorkloadEntry:
    assignee: str
    active_count: int
    last_active: datetime
    deliverables: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignee": self.assignee,
            "activeCount": self.active_count,
            "lastActive": isoformat(self.last_active),
            "deliverables": [
                {**item, "deadline": isoformat(item.get("deadline"))} for item in self.deliverables
            ],
        }


@dataclass
class SentimentSummary:
    channel_kind: str
    window_label: str
    average: float = 0.0
    total: int = 0
    positive: int = 0
    negative: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelKind": self.channel_kind,
            "window": self.window_label,
            "avgSentiment": self.average,
            "totalMessages": self.total,
            "positiveCount": self.positive,
            "negativeCount": self.negative,
        }


@dataclass
class ChannelActivity:
    channel_kind: str
    message_count: int
    unique_users: List[str]
    last_activity: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelKind": self.channel_kind,
            "messageCount": self.message_count,
            "uniqueUsers": list(self.unique_users),
            "lastActivity": isoformat(self.last_activity),
        }


@dataclass
class UrgentItem:
    external_id: str
    channel_kind: str
    author_name: str
    text: str
    occurred_at: datetime
    level: str
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "channelKind": self.channel_kind,
            "authorName": self.author_name,
            "text": self.text,
            "occurredAt": isoformat(self.occurred_at),
            "priority": {"level": self.level, "reasons": list(self.reasons)},
        }
