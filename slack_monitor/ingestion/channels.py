"""
Monitored channel map: Slack channel id -> logical channel kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from ..models import ChannelKind
from ..utils import is_configured

logger = logging.getLogger(__name__)

CHANNEL_DESCRIPTIONS = {
    ChannelKind.MAIN: "Main title channel - strategic discussions and creative decisions",
    ChannelKind.PRODUCTION: "Asset production channel - design/motion work and internal reviews",
    ChannelKind.CLIENT: "External client channel - client requests, feedback and concerns",
}


class SlackConfigError(ValueError):
    """Raised when required Slack settings are missing."""


@dataclass(frozen=True)
class MonitoredChannel:
    channel_id: str
    kind: ChannelKind
    description: str


def validate_slack_config(config: Dict[str, Any]) -> None:
    """
    Check that every Slack setting needed for the live feed is present.

    Raises:
        SlackConfigError: listing all missing settings at once.
    """
    slack_cfg = config.get("slack") or {}
    channels_cfg = slack_cfg.get("channels") or {}
    missing: List[str] = []
    for key in ("bot_token", "app_token"):
        if not is_configured(slack_cfg.get(key)):
            missing.append(f"slack.{key}")
    for kind in ChannelKind:
        if not is_configured(channels_cfg.get(kind.value)):
            missing.append(f"slack.channels.{kind.value}")
    if missing:
        raise SlackConfigError(f"Missing required Slack configuration: {', '.join(missing)}")


def build_channel_map(config: Dict[str, Any]) -> Dict[str, MonitoredChannel]:
    """Map configured channel ids to their kind. Unset ids are skipped with a warning."""
    channels_cfg = (config.get("slack") or {}).get("channels") or {}
    channel_map: Dict[str, MonitoredChannel] = {}
    for kind in ChannelKind:
        channel_id = channels_cfg.get(kind.value)
        if not is_configured(channel_id):
            logger.warning("[INGEST] No channel id configured for %s channel", kind.value)
            continue
        channel_id = str(channel_id).strip()
        channel_map[channel_id] = MonitoredChannel(
            channel_id=channel_id,
            kind=kind,
            description=CHANNEL_DESCRIPTIONS[kind],
        )
    return channel_map
