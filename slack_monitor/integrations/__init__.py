"""
Clients for external platforms.
"""

from .slack_client import SlackAPIClient, SlackAPIError

__all__ = ["SlackAPIClient", "SlackAPIError"]
