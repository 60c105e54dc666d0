"""
Slack API client utilities.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class SlackAPIError(RuntimeError):
    """Raised when Slack API responses are unsuccessful."""


class SlackAPIClient:
    """
    Lightweight wrapper around the Slack Web API.

    Only the calls needed by ingestion are exposed: author lookup for new
    messages and a token check for startup diagnostics.
    """

    BASE_URL = "https://slack.com/api"

    def __init__(self, bot_token: Optional[str] = None, timeout: float = 30.0):
        self.bot_token = bot_token or os.getenv("SLACK_BOT_TOKEN")
        if not self.bot_token or self.bot_token.startswith("${"):
            raise SlackAPIError(
                "Slack credentials not configured. Set SLACK_BOT_TOKEN in your "
                "environment or slack.bot_token in config.yaml."
            )
        self.timeout = timeout
        self.session = self._build_session(self.bot_token)

    @staticmethod
    def _build_session(token: str) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": "SlackProjectMonitor/Ingestion",
        })
        return session

    # ------------------------------------------------------------------
    # Public API helpers
    # ------------------------------------------------------------------
    def get_user_info(self, user: str) -> Dict[str, Any]:
        """
        Get information about a Slack user.

        Args:
            user: User ID (e.g., "U0123456789")

        Returns:
            Dictionary containing user information
        """
        response = self._get("users.info", params={"user": user})
        data = response.json()
        self._raise_for_error(data, "get_user_info")
        return data

    def auth_test(self) -> Dict[str, Any]:
        """Retrieve identity details (team/workspace, bot user) for the current token."""
        response = self._post("auth.test")
        data = response.json()
        self._raise_for_error(data, "auth_test")
        return data

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Make a GET request to the Slack API."""
        url = f"{self.BASE_URL}/{endpoint}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response

    def _post(self, endpoint: str, json: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Make a POST request to the Slack API."""
        url = f"{self.BASE_URL}/{endpoint}"
        response = self.session.post(url, json=json, timeout=self.timeout)
        response.raise_for_status()
        return response

    @staticmethod
    def _raise_for_error(data: Dict[str, Any], action: str) -> None:
        """
        Raise SlackAPIError if the response indicates an error.

        Slack API returns ok: false when there's an error.
        """
        if not data.get("ok", False):
            error_msg = data.get("error", "unknown_error")
            logger.error("Slack API error during %s: %s", action, error_msg)
            raise SlackAPIError(f"Slack API error during {action}: {error_msg}")
