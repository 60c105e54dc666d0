import asyncio
import logging

from slack_monitor.ingestion.channels import build_channel_map
from slack_monitor.ingestion.normalizer import EventNormalizer
from slack_monitor.ingestion.service import IngestionService
from slack_monitor.integrations.slack_client import SlackAPIError

from tests.fixtures.message_builders import make_store
from tests.fixtures.mongo_fakes import FakeCollection

CONFIG = {"slack": {"channels": {"main": "CMAIN", "production": "CPROD", "client": "CCLIENT"}}}


class StubSlackClient:
    def __init__(self, error=None):
        self.error = error
        self.user_calls = 0

    def get_user_info(self, user):
        self.user_calls += 1
        if self.error is not None:
            raise self.error
        return {"ok": True, "user": {"id": user, "name": "dana", "real_name": "Dana Scully"}}


class StubWorker:
    def __init__(self, accept=True):
        self.accept = accept
        self.submitted = []

    def submit(self, message):
        self.submitted.append(message.external_id)
        return self.accept


def make_service(collection, slack_client=None, worker=None):
    return IngestionService(
        EventNormalizer(build_channel_map(CONFIG)),
        make_store(collection),
        slack_client or StubSlackClient(),
        worker,
    )


def message_event(ts="1705312800.000200", channel="CMAIN"):
    return {"type": "message", "channel": channel, "user": "U1", "text": "Kickoff notes", "ts": ts}


def test_reingesting_same_event_is_idempotent():
    collection = FakeCollection()
    worker = StubWorker()
    service = make_service(collection, worker=worker)

    first = asyncio.run(service.handle_message_event(message_event()))
    second = asyncio.run(service.handle_message_event(message_event()))

    assert first is not None
    assert second is None
    assert len(collection.docs) == 1
    assert worker.submitted == ["1705312800.000200"]
    assert "analysis" not in collection.docs[0]


def test_unmonitored_channel_skips_user_lookup():
    collection = FakeCollection()
    slack_client = StubSlackClient()
    service = make_service(collection, slack_client=slack_client)

    assert asyncio.run(service.handle_message_event(message_event(channel="COTHER"))) is None
    assert slack_client.user_calls == 0
    assert collection.docs == []


def test_failed_user_lookup_drops_message():
    collection = FakeCollection()
    service = make_service(collection, slack_client=StubSlackClient(error=SlackAPIError("user_not_found")))

    assert asyncio.run(service.handle_message_event(message_event())) is None
    assert collection.docs == []


def test_store_failure_is_logged_not_raised(caplog):
    from pymongo.errors import PyMongoError

    collection = FakeCollection()
    collection.fail_with = PyMongoError("connection reset")
    service = make_service(collection)

    with caplog.at_level(logging.ERROR):
        assert asyncio.run(service.handle_message_event(message_event())) is None
    assert "Failed to store message" in caplog.text


def test_full_queue_keeps_message_for_backlog(caplog):
    collection = FakeCollection()
    service = make_service(collection, worker=StubWorker(accept=False))

    with caplog.at_level(logging.WARNING):
        stored = asyncio.run(service.handle_message_event(message_event()))

    assert stored is not None
    assert len(collection.docs) == 1
    assert "Enrichment queue full" in caplog.text


def test_reaction_appends_to_existing_message():
    collection = FakeCollection()
    service = make_service(collection)
    asyncio.run(service.handle_message_event(message_event()))

    event = {
        "type": "reaction_added",
        "user": "U2",
        "reaction": "eyes",
        "item": {"type": "message", "channel": "CMAIN", "ts": "1705312800.000200"},
    }
    assert asyncio.run(service.handle_reaction_event(event)) is True
    assert asyncio.run(service.handle_reaction_event({**event, "reaction": "fire"})) is True

    reactions = collection.docs[0]["reactions"]
    assert [reaction["emoji"] for reaction in reactions] == ["eyes", "fire"]
    assert reactions[0]["userId"] == "U2"


def test_reaction_for_unknown_message_never_creates_placeholder(caplog):
    collection = FakeCollection()
    service = make_service(collection)
    event = {
        "type": "reaction_added",
        "user": "U2",
        "reaction": "eyes",
        "item": {"type": "message", "channel": "CMAIN", "ts": "999.000"},
    }

    with caplog.at_level(logging.DEBUG, logger="slack_monitor.ingestion.service"):
        assert asyncio.run(service.handle_reaction_event(event)) is False

    assert collection.docs == []
    assert "unknown message 999.000" in caplog.text
