"""
Single schema-enforcing boundary between parsed drafts and stored analysis.

Every value that leaves here is present, typed and in range. Downstream
code (store, rollups, API) never re-validates.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from ..models import (
    DELIVERABLE_STATUSES,
    PRIORITY_LEVELS,
    SENTIMENT_LABELS,
    ActionItemMention,
    Analysis,
    DeliverableMention,
    Entity,
    Intent,
    Priority,
    Sentiment,
)
from .parser import AnalysisDraft

_LEADING_NUMBER_RE = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def coerce_number(
    value: Any,
    default: float = 0.0,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> float:
    """
    Read a float from loosely-typed input and clamp it.

    Strings contribute their leading numeric prefix (``"0.8 (high)"`` -> 0.8).
    Booleans, NaN, infinities and anything unreadable become ``default``.
    """
    number: Optional[float] = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            number = None
    elif isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(value)
        if match:
            try:
                number = float(match.group(0))
            except ValueError:
                number = None

    if number is None or not math.isfinite(number):
        number = default
    if minimum is not None:
        number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


def parse_deadline(value: Any) -> Optional[datetime]:
    """
    Date string or datetime -> aware UTC datetime; None on anything else.

    Completions write deadlines loosely (``"January 20, 2024"``,
    ``"2024/01/20"``, RFC 2822 dates), so strings go through dateutil.
    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.parse(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _choice(value: Any, allowed, default: str) -> str:
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in allowed:
            return candidate
    return default


def _text(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _confidence(item: Dict[str, Any]) -> float:
    return coerce_number(item.get("confidence"), minimum=0.0, maximum=1.0)


def validate_sentiment(raw: Optional[Dict[str, Any]]) -> Sentiment:
    raw = raw or {}
    return Sentiment(
        score=coerce_number(raw.get("score"), minimum=-1.0, maximum=1.0),
        label=_choice(raw.get("label"), SENTIMENT_LABELS, "neutral"),
        confidence=_confidence(raw),
    )


def validate_intent(raw: Optional[Dict[str, Any]]) -> Intent:
    raw = raw or {}
    category = _text(raw.get("category")).lower()
    return Intent(category=category or "update", confidence=_confidence(raw))


def validate_priority(raw: Optional[Dict[str, Any]]) -> Priority:
    raw = raw or {}
    reasons = raw.get("reasons")
    if isinstance(reasons, str):
        reasons = [reasons]
    if not isinstance(reasons, list):
        reasons = []
    return Priority(
        level=_choice(raw.get("level"), PRIORITY_LEVELS, "low"),
        reasons=[reason.strip() for reason in reasons if isinstance(reason, str) and reason.strip()],
    )


def validate_entities(raw: Optional[List[Dict[str, Any]]]) -> List[Entity]:
    return [
        Entity(
            type=_text(item.get("type")).lower() or "unknown",
            value=_text(item.get("value")),
            confidence=_confidence(item),
        )
        for item in raw or []
        if isinstance(item, dict)
    ]


def validate_deliverables(raw: Optional[List[Dict[str, Any]]]) -> List[DeliverableMention]:
    mentions = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name")) or _text(item.get("value"))
        mentions.append(
            DeliverableMention(
                name=name,
                status=_choice(item.get("status"), DELIVERABLE_STATUSES, "concept"),
                assignee=_optional_text(item.get("assignee")),
                deadline=parse_deadline(item.get("deadline")),
                confidence=_confidence(item),
            )
        )
    return mentions


def validate_action_items(raw: Optional[List[Dict[str, Any]]]) -> List[ActionItemMention]:
    items = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        items.append(
            ActionItemMention(
                task=_text(item.get("task")) or _text(item.get("value")),
                assignee=_optional_text(item.get("assignee")),
                deadline=parse_deadline(item.get("deadline")),
                confidence=_confidence(item),
            )
        )
    return items


def validate_analysis(draft: Optional[AnalysisDraft], processed_at: Optional[datetime] = None) -> Analysis:
    """
    Build a fully-populated ``Analysis`` from any draft, including the empty one.

    The result is always marked processed: partial drafts still count as an
    enrichment, with unparsed fields at their defaults.
    """
    draft = draft or AnalysisDraft.empty()
    return Analysis(
        processed=True,
        processed_at=processed_at or datetime.now(timezone.utc),
        sentiment=validate_sentiment(draft.sentiment),
        entities=validate_entities(draft.entities),
        intent=validate_intent(draft.intent),
        priority=validate_priority(draft.priority),
        deliverables=validate_deliverables(draft.deliverables),
        action_items=validate_action_items(draft.action_items),
    )
