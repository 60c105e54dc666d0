"""
Mongo-backed message persistence with async helpers.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..models import Analysis, CanonicalMessage, ChannelKind, Reaction

logger = logging.getLogger(__name__)


class MessageStoreError(RuntimeError):
    """Raised when a Mongo read or write fails."""


class MessageStore:
    """
    Document repository for canonical messages and their analysis.

    Every write is keyed by ``externalId`` so concurrent handling of the same
    Slack event is safe without locks.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        client: Optional[AsyncIOMotorClient] = None,
    ) -> None:
        mongo_cfg = (config or {}).get("mongo", {})
        self._uri = mongo_cfg.get("uri") or "mongodb://127.0.0.1:27017"
        self._database = mongo_cfg.get("database", "slack_monitor")
        self._collection_name = mongo_cfg.get("collection", "messages")
        self._index_lock = asyncio.Lock()

        if client is not None:
            self._client = client
        else:
            self._client = AsyncIOMotorClient(
                self._uri, serverSelectionTimeoutMS=5000, tz_aware=True
            )
        self._collection = self._client[self._database][self._collection_name]
        logger.info(
            "[MESSAGE STORE] Initialized MessageStore (db=%s collection=%s)",
            self._database,
            self._collection_name,
        )

    async def ensure_indexes(self) -> None:
        """Create the dedup key and query indexes if they are missing."""
        async with self._index_lock:
            try:
                indexes = await self._collection.index_information()
                if "external_id_unique" not in indexes:
                    await self._collection.create_index(
                        "externalId", unique=True, name="external_id_unique"
                    )
                if "kind_occurred_idx" not in indexes:
                    await self._collection.create_index(
                        [("channelKind", 1), ("occurredAt", -1)], name="kind_occurred_idx"
                    )
                if "processed_idx" not in indexes:
                    await self._collection.create_index(
                        [("analysis.processed", 1), ("analysis.lastAttemptAt", 1)], name="processed_idx"
                    )
                if "deliverable_status_idx" not in indexes:
                    await self._collection.create_index(
                        "analysis.deliverables.status", name="deliverable_status_idx"
                    )
                if "priority_level_idx" not in indexes:
                    await self._collection.create_index(
                        "analysis.priority.level", name="priority_level_idx"
                    )
            except PyMongoError as exc:
                raise MessageStoreError(f"Failed to ensure indexes: {exc}") from exc

    async def upsert_message(self, message: CanonicalMessage) -> bool:
        """
        Insert the message unless its external id already exists.

        Returns True when a new document was created. Re-ingesting a known
        id is a no-op.
        """
        try:
            result = await self._collection.update_one(
                {"externalId": message.external_id},
                {"$setOnInsert": message.to_document()},
                upsert=True,
            )
        except DuplicateKeyError:
            # Lost an insert race against the same event; the row exists.
            logger.debug("[MESSAGE STORE] Duplicate insert for %s ignored", message.external_id)
            return False
        except PyMongoError as exc:
            raise MessageStoreError(f"Failed to upsert message {message.external_id}: {exc}") from exc
        return result.upserted_id is not None

    async def append_reaction(self, external_id: str, reaction: Reaction) -> bool:
        """Append a reaction. Returns False when no message matched."""
        try:
            result = await self._collection.update_one(
                {"externalId": external_id},
                {"$push": {"reactions": reaction.to_document()}},
            )
        except PyMongoError as exc:
            raise MessageStoreError(f"Failed to append reaction to {external_id}: {exc}") from exc
        return result.matched_count > 0

    async def find_unprocessed(self, limit: int = 10) -> List[CanonicalMessage]:
        """
        Return up to ``limit`` messages without a processed analysis.

        Order: never-attempted first, then least recently attempted, then
        oldest. Failed messages rotate to the back on every attempt.
        """
        limit = max(1, limit)
        try:
            cursor = (
                self._collection.find({"analysis.processed": {"$ne": True}})
                .sort([("analysis.lastAttemptAt", 1), ("occurredAt", 1), ("externalId", 1)])
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            raise MessageStoreError(f"Failed to load unprocessed messages: {exc}") from exc
        return [CanonicalMessage.from_document(doc) for doc in docs]

    async def mark_attempt(self, external_id: str, attempted_at: Optional[datetime] = None) -> None:
        """Stamp an enrichment attempt so the backlog order stays fair."""
        attempted_at = attempted_at or datetime.now(timezone.utc)
        try:
            await self._collection.update_one(
                {"externalId": external_id},
                {"$set": {"analysis.lastAttemptAt": attempted_at}},
            )
        except PyMongoError as exc:
            raise MessageStoreError(f"Failed to mark attempt for {external_id}: {exc}") from exc

    async def update_analysis(self, external_id: str, analysis: Analysis) -> bool:
        """Write the validated analysis onto its message."""
        payload = {f"analysis.{key}": value for key, value in analysis.to_document().items()}
        try:
            result = await self._collection.update_one({"externalId": external_id}, {"$set": payload})
        except PyMongoError as exc:
            raise MessageStoreError(f"Failed to update analysis for {external_id}: {exc}") from exc
        if result.matched_count == 0:
            logger.warning("[MESSAGE STORE] No message %s to attach analysis to", external_id)
            return False
        return True

    async def find_messages(
        self,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        channel_kind: Optional[ChannelKind] = None,
        analyzed_only: bool = False,
        skip: int = 0,
        limit: int = 1000,
        newest_first: bool = True,
    ) -> List[CanonicalMessage]:
        """Query messages by time window / channel kind, ordered by ``occurredAt``."""
        query: Dict[str, Any] = {}
        occurred: Dict[str, Any] = {}
        if start is not None:
            occurred["$gte"] = start
        if end is not None:
            occurred["$lte"] = end
        if occurred:
            query["occurredAt"] = occurred
        if channel_kind is not None:
            query["channelKind"] = channel_kind.value
        if analyzed_only:
            query["analysis.processed"] = True

        direction = -1 if newest_first else 1
        limit = max(1, limit)
        try:
            cursor = (
                self._collection.find(query)
                .sort([("occurredAt", direction), ("externalId", direction)])
                .skip(max(0, skip))
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            raise MessageStoreError(f"Failed to query messages: {exc}") from exc
        return [CanonicalMessage.from_document(doc) for doc in docs]

    async def health(self) -> Dict[str, Any]:
        """Return connectivity details suitable for health endpoints."""
        try:
            await self._client.admin.command("ping")
            return {
                "status": "ok",
                "database": self._database,
                "collection": self._collection_name,
            }
        except PyMongoError as exc:
            logger.error("[MESSAGE STORE] Health check failed: %s", exc)
            return {"status": "error"}

    def close(self) -> None:
        self._client.close()
