from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from pymongo.errors import PyMongoError

from slack_monitor.models import ChannelKind, Reaction
from slack_monitor.services.message_store import MessageStoreError

from tests.fixtures.message_builders import at, make_analysis, make_message, make_store
from tests.fixtures.mongo_fakes import FakeClient, FakeCollection


def test_ensure_indexes_creates_dedup_and_query_indexes():
    collection = FakeCollection()
    store = make_store(collection)

    asyncio.run(store.ensure_indexes())

    assert collection.indexes["external_id_unique"]["unique"] is True
    assert {
        "kind_occurred_idx",
        "processed_idx",
        "deliverable_status_idx",
        "priority_level_idx",
    } <= set(collection.indexes)


def test_upsert_is_idempotent_by_external_id():
    collection = FakeCollection()
    store = make_store(collection)
    message = make_message("1705312800.000200", at(9))

    assert asyncio.run(store.upsert_message(message)) is True
    assert asyncio.run(store.upsert_message(message)) is False
    assert len(collection.docs) == 1
    doc = collection.docs[0]
    assert doc["externalId"] == "1705312800.000200"
    assert doc["channelKind"] == "main"
    assert doc["occurredAt"] == at(9)
    assert "analysis" not in doc


def test_append_reaction_requires_existing_message():
    collection = FakeCollection()
    store = make_store(collection)
    reaction = Reaction(emoji="eyes", user_id="U2", added_at=at(10))

    assert asyncio.run(store.append_reaction("missing", reaction)) is False
    assert collection.docs == []

    asyncio.run(store.upsert_message(make_message("m1", at(9))))
    assert asyncio.run(store.append_reaction("m1", reaction)) is True
    stored = asyncio.run(store.find_messages())[0]
    assert stored.reactions == (reaction,)


def test_find_unprocessed_orders_by_attempt_then_age():
    collection = FakeCollection()
    store = make_store(collection)

    async def scenario():
        for external_id, hour in (("late", 11), ("early", 9), ("done", 8)):
            await store.upsert_message(make_message(external_id, at(hour)))
        await store.update_analysis("done", make_analysis())
        await store.mark_attempt("early", datetime(2024, 1, 16, tzinfo=timezone.utc))
        return await store.find_unprocessed(10)

    messages = asyncio.run(scenario())
    assert [message.external_id for message in messages] == ["late", "early"]
    assert all(message.analysis is None for message in messages)


def test_update_analysis_round_trips():
    store = make_store()

    async def scenario():
        await store.upsert_message(make_message("m1", at(9)))
        updated = await store.update_analysis("m1", make_analysis(score=0.5, level="urgent"))
        missing = await store.update_analysis("nope", make_analysis())
        return updated, missing, await store.find_messages(analyzed_only=True)

    updated, missing, messages = asyncio.run(scenario())
    assert updated is True
    assert missing is False
    analysis = messages[0].analysis
    assert analysis.processed is True
    assert analysis.sentiment.score == 0.5
    assert analysis.priority.level == "urgent"


def test_find_messages_filters_window_kind_and_pages():
    store = make_store()

    async def scenario():
        await store.upsert_message(make_message("a", at(8)))
        await store.upsert_message(make_message("b", at(10), kind=ChannelKind.CLIENT))
        await store.upsert_message(make_message("c", at(12)))
        await store.upsert_message(make_message("d", at(14)))
        window = await store.find_messages(start=at(9), end=at(13))
        main_page = await store.find_messages(channel_kind=ChannelKind.MAIN, skip=1, limit=1)
        oldest_first = await store.find_messages(newest_first=False)
        return window, main_page, oldest_first

    window, main_page, oldest_first = asyncio.run(scenario())
    assert [message.external_id for message in window] == ["c", "b"]
    assert [message.external_id for message in main_page] == ["c"]
    assert [message.external_id for message in oldest_first] == ["a", "b", "c", "d"]


def test_driver_errors_are_wrapped():
    collection = FakeCollection()
    collection.fail_with = PyMongoError("not primary")
    store = make_store(collection)

    with pytest.raises(MessageStoreError):
        asyncio.run(store.find_unprocessed(10))
    with pytest.raises(MessageStoreError):
        asyncio.run(store.upsert_message(make_message("m1", at(9))))


def test_health_reports_ping_status():
    from slack_monitor.services.message_store import MessageStore

    client = FakeClient(FakeCollection())
    store = MessageStore(config={"mongo": {"database": "test-db"}}, client=client)
    assert asyncio.run(store.health())["status"] == "ok"

    client.admin.fail_with = PyMongoError("timeout")
    assert asyncio.run(store.health()) == {"status": "error"}

    store.close()
    assert client.closed is True
