"""
Domain records shared by ingestion, enrichment and rollups.

Stored documents use camelCase keys; the dataclasses here are the in-process
view and convert at the store boundary via ``to_document``/``from_document``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ChannelKind(str, Enum):
    MAIN = "main"
    PRODUCTION = "production"
    CLIENT = "client"

    @classmethod
    def parse(cls, value: Any) -> Optional["ChannelKind"]:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


SENTIMENT_LABELS = ("positive", "neutral", "negative")
PRIORITY_LEVELS = ("low", "medium", "high", "urgent")
URGENT_PRIORITY_LEVELS = frozenset({"high", "urgent"})
DELIVERABLE_STATUSES = ("concept", "in-progress", "review", "approved", "delivered")
ACTIVE_DELIVERABLE_STATUSES = frozenset({"concept", "in-progress", "review"})


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (Mongo returns naive UTC unless tz_aware)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Attachment:
    id: Optional[str] = None
    name: Optional[str] = None
    mimetype: Optional[str] = None
    url_private: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mimetype": self.mimetype,
            "url_private": self.url_private,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Attachment":
        return cls(
            id=doc.get("id"),
            name=doc.get("name"),
            mimetype=doc.get("mimetype"),
            url_private=doc.get("url_private"),
        )


@dataclass(frozen=True)
class Reaction:
    emoji: str
    user_id: Optional[str]
    added_at: datetime

    def to_document(self) -> Dict[str, Any]:
        return {"emoji": self.emoji, "userId": self.user_id, "addedAt": self.added_at}

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Reaction":
        return cls(
            emoji=doc.get("emoji") or "",
            user_id=doc.get("userId"),
            added_at=as_utc(doc.get("addedAt")) or datetime.now(timezone.utc),
        )


@dataclass
class Sentiment:
    score: float = 0.0
    label: str = "neutral"
    confidence: float = 0.0

    def to_document(self) -> Dict[str, Any]:
        return {"score": self.score, "label": self.label, "confidence": self.confidence}


@dataclass
class Entity:
    type: str = "unknown"
    value: str = ""
    confidence: float = 0.0

    def to_document(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value, "confidence": self.confidence}


@dataclass
class Intent:
    category: str = "update"
    confidence: float = 0.0

    def to_document(self) -> Dict[str, Any]:
        return {"category": self.category, "confidence": self.confidence}


@dataclass
class Priority:
    level: str = "low"
    reasons: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return {"level": self.level, "reasons": list(self.reasons)}


@dataclass
class DeliverableMention:
    name: str = ""
    status: str = "concept"
    assignee: Optional[str] = None
    deadline: Optional[datetime] = None
    confidence: float = 0.0

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "assignee": self.assignee,
            "deadline": self.deadline,
            "confidence": self.confidence,
        }


@dataclass
class ActionItemMention:
    task: str = ""
    assignee: Optional[str] = None
    deadline: Optional[datetime] = None
    confidence: float = 0.0

    def to_document(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "assignee": self.assignee,
            "deadline": self.deadline,
            "confidence": self.confidence,
        }


@dataclass
class Analysis:
    """Validated interpretation of one message. Built only by the validator."""

    processed: bool = False
    processed_at: Optional[datetime] = None
    sentiment: Sentiment = field(default_factory=Sentiment)
    entities: List[Entity] = field(default_factory=list)
    intent: Intent = field(default_factory=Intent)
    priority: Priority = field(default_factory=Priority)
    deliverables: List[DeliverableMention] = field(default_factory=list)
    action_items: List[ActionItemMention] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "processedAt": self.processed_at,
            "sentiment": self.sentiment.to_document(),
            "entities": [entity.to_document() for entity in self.entities],
            "intent": self.intent.to_document(),
            "priority": self.priority.to_document(),
            "deliverables": [item.to_document() for item in self.deliverables],
            "actionItems": [item.to_document() for item in self.action_items],
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Analysis":
        """Rebuild a stored analysis. Stored values already passed validation."""
        sentiment = doc.get("sentiment") or {}
        intent = doc.get("intent") or {}
        priority = doc.get("priority") or {}
        return cls(
            processed=bool(doc.get("processed")),
            processed_at=as_utc(doc.get("processedAt")),
            sentiment=Sentiment(
                score=float(sentiment.get("score", 0.0)),
                label=sentiment.get("label", "neutral"),
                confidence=float(sentiment.get("confidence", 0.0)),
            ),
            entities=[
                Entity(
                    type=item.get("type", "unknown"),
                    value=item.get("value", ""),
                    confidence=float(item.get("confidence", 0.0)),
                )
                for item in doc.get("entities") or []
            ],
            intent=Intent(
                category=intent.get("category", "update"),
                confidence=float(intent.get("confidence", 0.0)),
            ),
            priority=Priority(
                level=priority.get("level", "low"),
                reasons=list(priority.get("reasons") or []),
            ),
            deliverables=[
                DeliverableMention(
                    name=item.get("name", ""),
                    status=item.get("status", "concept"),
                    assignee=item.get("assignee"),
                    deadline=as_utc(item.get("deadline")),
                    confidence=float(item.get("confidence", 0.0)),
                )
                for item in doc.get("deliverables") or []
            ],
            action_items=[
                ActionItemMention(
                    task=item.get("task", ""),
                    assignee=item.get("assignee"),
                    deadline=as_utc(item.get("deadline")),
                    confidence=float(item.get("confidence", 0.0)),
                )
                for item in doc.get("actionItems") or []
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form for the query surface."""
        payload = self.to_document()
        payload["processedAt"] = isoformat(self.processed_at)
        for item in payload["deliverables"] + payload["actionItems"]:
            item["deadline"] = isoformat(item["deadline"])
        return payload


@dataclass(frozen=True)
class CanonicalMessage:
    """Normalized chat message. ``external_id`` is the dedup key."""

    external_id: str
    channel_id: str
    channel_kind: ChannelKind
    author_id: str
    author_name: str
    text: str
    occurred_at: datetime
    thread_id: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()
    reactions: Tuple[Reaction, ...] = ()
    profile_snapshot: Dict[str, Any] = field(default_factory=dict)
    analysis: Optional[Analysis] = None

    def to_document(self) -> Dict[str, Any]:
        # ``analysis`` is owned by the enrichment pipeline and never written here.
        return {
            "externalId": self.external_id,
            "channelId": self.channel_id,
            "channelKind": self.channel_kind.value,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "text": self.text,
            "occurredAt": self.occurred_at,
            "threadId": self.thread_id,
            "attachments": [item.to_document() for item in self.attachments],
            "reactions": [item.to_document() for item in self.reactions],
            "profileSnapshot": dict(self.profile_snapshot),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CanonicalMessage":
        analysis_doc = doc.get("analysis") or {}
        analysis = Analysis.from_document(analysis_doc) if analysis_doc.get("processed") else None
        return cls(
            external_id=doc["externalId"],
            channel_id=doc.get("channelId", ""),
            channel_kind=ChannelKind(doc.get("channelKind", ChannelKind.MAIN.value)),
            author_id=doc.get("authorId", ""),
            author_name=doc.get("authorName", ""),
            text=doc.get("text", ""),
            occurred_at=as_utc(doc["occurredAt"]),
            thread_id=doc.get("threadId"),
            attachments=tuple(Attachment.from_document(item) for item in doc.get("attachments") or []),
            reactions=tuple(Reaction.from_document(item) for item in doc.get("reactions") or []),
            profile_snapshot=dict(doc.get("profileSnapshot") or {}),
            analysis=analysis,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "externalId": self.external_id,
            "channelKind": self.channel_kind.value,
            "authorName": self.author_name,
            "text": self.text,
            "occurredAt": isoformat(self.occurred_at),
            "threadId": self.thread_id,
            "reactionCount": len(self.reactions),
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }
