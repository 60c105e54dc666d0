"""
Async ingestion: normalize, persist idempotently, hand off for enrichment.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from ..integrations.slack_client import SlackAPIClient, SlackAPIError
from ..models import CanonicalMessage
from ..services.message_store import MessageStore, MessageStoreError
from .normalizer import EventNormalizer

logger = logging.getLogger(__name__)


class IngestionService:
    """
    Handles one inbound event at a time; every failure is logged per event.

    ``enrichment_worker`` is anything with ``submit(message) -> bool``. It is
    only called for newly inserted messages, never for re-deliveries.
    """

    def __init__(
        self,
        normalizer: EventNormalizer,
        store: MessageStore,
        slack_client: SlackAPIClient,
        enrichment_worker=None,
    ):
        self.normalizer = normalizer
        self.store = store
        self.slack_client = slack_client
        self.enrichment_worker = enrichment_worker

    async def handle_message_event(self, event: Dict[str, Any]) -> Optional[CanonicalMessage]:
        """Returns the stored message when a new row was inserted."""
        try:
            channel = self.normalizer.accepts(event)
            if channel is None:
                return None

            user_info = await self._lookup_user(event["user"])
            if user_info is None:
                return None

            message = self.normalizer.build_message(event, channel, user_info)
            if message is None:
                return None

            inserted = await self.store.upsert_message(message)
            if not inserted:
                logger.debug("[INGEST] Message %s already stored", message.external_id)
                return None

            logger.info(
                "[INGEST] Stored message %s from %s channel by %s",
                message.external_id,
                message.channel_kind.value,
                message.author_name,
            )
            self._hand_off(message)
            return message
        except MessageStoreError as exc:
            logger.error("[INGEST] Failed to store message %s: %s", event.get("ts"), exc)
        except Exception:
            logger.exception("[INGEST] Unexpected error processing message %s", event.get("ts"))
        return None

    async def handle_reaction_event(self, event: Dict[str, Any]) -> bool:
        try:
            parsed = self.normalizer.build_reaction(event)
            if parsed is None:
                return False
            external_id, reaction = parsed
            matched = await self.store.append_reaction(external_id, reaction)
            if not matched:
                logger.debug("[INGEST] Reaction for unknown message %s dropped", external_id)
                return False
            logger.debug("[INGEST] Reaction %s added to message %s", reaction.emoji, external_id)
            return True
        except MessageStoreError as exc:
            logger.error("[INGEST] Failed to store reaction: %s", exc)
        except Exception:
            logger.exception("[INGEST] Unexpected error processing reaction")
        return False

    async def _lookup_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            # requests-based client; keep it off the event loop
            return await asyncio.to_thread(self.slack_client.get_user_info, user_id)
        except (SlackAPIError, requests.RequestException) as exc:
            logger.warning("[INGEST] User lookup failed for %s; dropping message: %s", user_id, exc)
            return None

    def _hand_off(self, message: CanonicalMessage) -> None:
        if self.enrichment_worker is None:
            return
        if not self.enrichment_worker.submit(message):
            logger.warning(
                "[INGEST] Enrichment queue full; %s left for the backlog sweep",
                message.external_id,
            )
