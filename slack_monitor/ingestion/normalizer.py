"""
Slack event -> canonical record conversion.

Pure functions over event payloads; no I/O. The ingestion service supplies
the author profile it looked up.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..models import Attachment, CanonicalMessage, Reaction
from .channels import MonitoredChannel

logger = logging.getLogger(__name__)

REJECTED_SUBTYPES = frozenset({"bot_message", "message_changed", "message_deleted"})


def slack_ts_to_datetime(ts: Any) -> Optional[datetime]:
    """Convert a Slack ``"1700000000.123456"`` timestamp to an aware UTC datetime."""
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class EventNormalizer:
    """Filters inbound events and builds ``CanonicalMessage``/``Reaction`` records."""

    def __init__(self, channel_map: Dict[str, MonitoredChannel]):
        self.channel_map = channel_map

    def monitored_channel(self, channel_id: Optional[str]) -> Optional[MonitoredChannel]:
        if not channel_id:
            return None
        return self.channel_map.get(channel_id)

    def accepts(self, event: Dict[str, Any]) -> Optional[MonitoredChannel]:
        """
        Return the monitored channel for an ingestible message event, else None.

        Rejected: unmonitored channels, bot echoes, edits/deletes, events
        without an author or timestamp, and events with neither text nor files.
        """
        channel = self.monitored_channel(event.get("channel"))
        if channel is None:
            return None
        subtype = event.get("subtype")
        if subtype in REJECTED_SUBTYPES or event.get("bot_id"):
            logger.debug("[INGEST] Skipping %s event in %s", subtype or "bot", channel.kind.value)
            return None
        if not event.get("user") or not event.get("ts"):
            logger.debug("[INGEST] Skipping event without author or ts in %s", channel.kind.value)
            return None
        if not (event.get("text") or event.get("files")):
            logger.debug("[INGEST] Skipping empty message %s", event.get("ts"))
            return None
        return channel

    def build_message(
        self,
        event: Dict[str, Any],
        channel: MonitoredChannel,
        user_info: Dict[str, Any],
    ) -> Optional[CanonicalMessage]:
        occurred_at = slack_ts_to_datetime(event.get("ts"))
        if occurred_at is None:
            logger.debug("[INGEST] Unreadable ts %r; dropping event", event.get("ts"))
            return None

        user = user_info.get("user") or {}
        author_id = event["user"]
        return CanonicalMessage(
            external_id=str(event["ts"]),
            channel_id=channel.channel_id,
            channel_kind=channel.kind,
            author_id=author_id,
            author_name=user.get("real_name") or user.get("name") or author_id,
            text=event.get("text") or "",
            occurred_at=occurred_at,
            thread_id=event.get("thread_ts"),
            attachments=tuple(
                Attachment(
                    id=item.get("id"),
                    name=item.get("name"),
                    mimetype=item.get("mimetype"),
                    url_private=item.get("url_private"),
                )
                for item in event.get("files") or []
                if isinstance(item, dict)
            ),
            profile_snapshot={
                "userProfile": user.get("profile") or {},
                "isBot": bool(user.get("is_bot", False)),
            },
        )

    def build_reaction(
        self,
        event: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[tuple]:
        """Return ``(external_id, Reaction)`` for a monitored reaction event, else None."""
        item = event.get("item") or {}
        if item.get("type", "message") != "message":
            return None
        if self.monitored_channel(item.get("channel")) is None:
            return None
        if not item.get("ts") or not event.get("reaction"):
            return None
        reaction = Reaction(
            emoji=event["reaction"],
            user_id=event.get("user"),
            added_at=now or datetime.now(timezone.utc),
        )
        return str(item["ts"]), reaction
