from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..models import ChannelKind, isoformat
from ..services.message_store import MessageStore
from . import aggregator
from .models import TimeWindow, resolve_timezone

logger = logging.getLogger(__name__)

MAX_ACTIVITY_PAGE = 200
DEFAULT_ACTIVITY_PAGE = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RollupService:
    """
    Read-only projections for the dashboard.

    Each call fetches the messages it needs from the store and folds them
    with the pure functions in ``aggregator``. Store errors propagate.
    """

    def __init__(
        self,
        store: MessageStore,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        rollup_cfg = (config or {}).get("rollups") or {}
        self.store = store
        self.tz = resolve_timezone(rollup_cfg.get("timezone"))
        self.urgent_limit = int(rollup_cfg.get("urgent_limit", aggregator.DEFAULT_URGENT_LIMIT))
        self.trailing_hours = float(rollup_cfg.get("trailing_window_hours", 24))
        self.max_messages = int(rollup_cfg.get("max_messages", 5000))
        self._clock = clock

    async def _analyzed_history(self):
        # Newest N, replayed oldest first so ties keep store order.
        messages = await self.store.find_messages(analyzed_only=True, limit=self.max_messages)
        return list(reversed(messages))

    async def dashboard(self) -> Dict[str, Any]:
        now = self._clock()
        today = TimeWindow.today(self.tz, now=now)
        trailing = TimeWindow.trailing(self.trailing_hours, now=now)

        today_messages = await self.store.find_messages(
            start=today.start, end=today.end, limit=self.max_messages
        )
        client_messages = await self.store.find_messages(
            start=trailing.start,
            end=trailing.end,
            channel_kind=ChannelKind.CLIENT,
            analyzed_only=True,
            limit=self.max_messages,
        )
        recent_analyzed = await self.store.find_messages(
            start=trailing.start, end=trailing.end, analyzed_only=True, limit=self.max_messages
        )
        deliverables = aggregator.merge_deliverables(await self._analyzed_history())

        logger.debug(
            "[ROLLUPS] Dashboard built from %s today / %s trailing messages",
            len(today_messages),
            len(recent_analyzed),
        )
        return {
            "todayActivity": [item.to_dict() for item in aggregator.channel_activity(today_messages, today)],
            "deliverables": [state.to_dict() for state in deliverables],
            "clientSentiment": aggregator.sentiment_summary(
                client_messages, ChannelKind.CLIENT, trailing
            ).to_dict(),
            "urgentItems": [
                item.to_dict()
                for item in aggregator.urgent_queue(recent_analyzed, trailing, limit=self.urgent_limit)
            ],
            "lastUpdated": isoformat(now),
        }

    async def activity(self, channel_kind: ChannelKind, limit: int = DEFAULT_ACTIVITY_PAGE, offset: int = 0) -> List[Dict[str, Any]]:
        limit = max(1, min(int(limit), MAX_ACTIVITY_PAGE))
        messages = await self.store.find_messages(
            channel_kind=channel_kind, skip=max(0, int(offset)), limit=limit
        )
        return [message.to_dict() for message in messages]

    async def team_workload(self) -> List[Dict[str, Any]]:
        entries = aggregator.team_workload(await self._analyzed_history())
        return [entry.to_dict() for entry in entries]

    async def digest(self, day: Optional[date] = None) -> Dict[str, Any]:
        now = self._clock()
        day = day or now.astimezone(self.tz).date()
        window = TimeWindow.for_day(day, self.tz)
        messages = await self.store.find_messages(
            start=window.start, end=window.end, limit=self.max_messages, newest_first=False
        )
        return aggregator.daily_digest(messages, window, generated_at=now)

    async def deliverables(self) -> Dict[str, Any]:
        states = aggregator.merge_deliverables(await self._analyzed_history())
        return {
            "deliverables": [state.to_dict() for state in states],
            "total": len(states),
            "byStatus": aggregator.status_breakdown(states),
        }
