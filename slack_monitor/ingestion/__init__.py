"""
Slack event ingestion: channel map, normalization, persistence, live listener.
"""

from .channels import (
    CHANNEL_DESCRIPTIONS,
    MonitoredChannel,
    SlackConfigError,
    build_channel_map,
    validate_slack_config,
)
from .normalizer import EventNormalizer
from .service import IngestionService

__all__ = [
    "CHANNEL_DESCRIPTIONS",
    "EventNormalizer",
    "IngestionService",
    "MonitoredChannel",
    "SlackConfigError",
    "build_channel_map",
    "validate_slack_config",
]
