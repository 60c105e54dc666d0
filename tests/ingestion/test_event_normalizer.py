from datetime import datetime, timezone

import pytest

from slack_monitor.ingestion.channels import SlackConfigError, build_channel_map, validate_slack_config
from slack_monitor.ingestion.normalizer import EventNormalizer, slack_ts_to_datetime
from slack_monitor.models import ChannelKind

CONFIG = {"slack": {"channels": {"main": "CMAIN", "production": "CPROD", "client": "CCLIENT"}}}
USER_INFO = {
    "ok": True,
    "user": {"id": "U1", "name": "dana", "real_name": "Dana Scully", "is_bot": False, "profile": {"title": "Designer"}},
}


@pytest.fixture
def normalizer():
    return EventNormalizer(build_channel_map(CONFIG))


def message_event(**overrides):
    event = {
        "type": "message",
        "channel": "CPROD",
        "user": "U1",
        "text": "Logo v2 is ready for review",
        "ts": "1705312800.000200",
    }
    event.update(overrides)
    return event


def test_channel_map_resolves_kinds_and_skips_unset_ids():
    channel_map = build_channel_map(
        {"slack": {"channels": {"main": "CMAIN", "production": "${SLACK_PRODUCTION_CHANNEL_ID}"}}}
    )
    assert list(channel_map) == ["CMAIN"]
    assert channel_map["CMAIN"].kind is ChannelKind.MAIN


def test_validate_slack_config_lists_every_missing_setting():
    with pytest.raises(SlackConfigError) as excinfo:
        validate_slack_config({"slack": {"bot_token": "xoxb-1", "channels": {"main": "CMAIN"}}})
    message = str(excinfo.value)
    assert "slack.app_token" in message
    assert "slack.channels.production" in message
    assert "slack.channels.client" in message
    assert "slack.bot_token" not in message


def test_accepts_monitored_channel(normalizer):
    channel = normalizer.accepts(message_event())
    assert channel.kind is ChannelKind.PRODUCTION


@pytest.mark.parametrize(
    "overrides",
    [
        {"channel": "COTHER"},
        {"subtype": "bot_message"},
        {"subtype": "message_changed"},
        {"subtype": "message_deleted"},
        {"bot_id": "B1"},
        {"text": "", "files": []},
        {"user": None},
    ],
)
def test_rejected_events(normalizer, overrides):
    assert normalizer.accepts(message_event(**overrides)) is None


def test_file_only_message_is_accepted(normalizer):
    event = message_event(text="", files=[{"id": "F1", "name": "logo.png"}])
    assert normalizer.accepts(event) is not None


def test_build_message_maps_fields(normalizer):
    event = message_event(
        thread_ts="1705312700.000100",
        files=[{"id": "F1", "name": "logo.png", "mimetype": "image/png", "url_private": "https://files/1", "size": 10}],
    )
    channel = normalizer.accepts(event)

    message = normalizer.build_message(event, channel, USER_INFO)

    assert message.external_id == "1705312800.000200"
    assert message.channel_id == "CPROD"
    assert message.channel_kind is ChannelKind.PRODUCTION
    assert message.author_name == "Dana Scully"
    assert message.occurred_at == datetime.fromtimestamp(1705312800.0002, tz=timezone.utc)
    assert message.thread_id == "1705312700.000100"
    assert message.attachments[0].to_document() == {
        "id": "F1",
        "name": "logo.png",
        "mimetype": "image/png",
        "url_private": "https://files/1",
    }
    assert message.profile_snapshot == {"userProfile": {"title": "Designer"}, "isBot": False}
    assert message.reactions == ()
    assert message.analysis is None


def test_display_name_falls_back_to_handle_then_id(normalizer):
    event = message_event()
    channel = normalizer.accepts(event)
    assert normalizer.build_message(event, channel, {"user": {"name": "dana"}}).author_name == "dana"
    assert normalizer.build_message(event, channel, {"user": {}}).author_name == "U1"


def test_build_reaction_only_for_monitored_channels(normalizer):
    now = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
    event = {
        "type": "reaction_added",
        "user": "U2",
        "reaction": "fire",
        "item": {"type": "message", "channel": "CCLIENT", "ts": "1705312800.000200"},
    }
    external_id, reaction = normalizer.build_reaction(event, now=now)
    assert external_id == "1705312800.000200"
    assert reaction.to_document() == {"emoji": "fire", "userId": "U2", "addedAt": now}

    event["item"]["channel"] = "COTHER"
    assert normalizer.build_reaction(event) is None


def test_slack_ts_to_datetime_rejects_garbage():
    assert slack_ts_to_datetime("not-a-ts") is None
    assert slack_ts_to_datetime(None) is None
