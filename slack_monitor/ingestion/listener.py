"""
Slack Socket Mode listener bridging the socket thread to the asyncio loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from slack_sdk.socket_mode import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web import WebClient

from .service import IngestionService

logger = logging.getLogger(__name__)


class SlackEventListener:
    """
    Receives ``events_api`` envelopes over Socket Mode.

    Every envelope is acknowledged first. ``message`` and ``reaction_added``
    events are scheduled onto ``loop`` and never awaited on the socket thread.
    """

    def __init__(
        self,
        app_token: str,
        bot_token: str,
        ingestion: IngestionService,
        loop: asyncio.AbstractEventLoop,
        client: Optional[SocketModeClient] = None,
    ):
        self.ingestion = ingestion
        self.loop = loop
        self.client = client or SocketModeClient(
            app_token=app_token,
            web_client=WebClient(token=bot_token),
        )
        self.client.socket_mode_request_listeners.append(self._on_request)

    def start(self) -> None:
        self.client.connect()
        logger.info("[INGEST] Slack socket mode listener connected")

    def stop(self) -> None:
        try:
            self.client.close()
        finally:
            logger.info("[INGEST] Slack socket mode listener closed")

    def _on_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
        if req.type != "events_api":
            return
        event = (req.payload or {}).get("event") or {}
        self.dispatch(event)

    def dispatch(self, event: Dict[str, Any]) -> Optional[asyncio.Future]:
        event_type = event.get("type")
        if event_type == "message":
            coro = self.ingestion.handle_message_event(event)
        elif event_type == "reaction_added":
            coro = self.ingestion.handle_reaction_event(event)
        else:
            return None
        return asyncio.run_coroutine_threadsafe(coro, self.loop)
