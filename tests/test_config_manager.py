import logging

import pytest

from slack_monitor import config_manager
from slack_monitor.config_manager import ConfigManager, get_global_config_manager, set_global_config_manager
from slack_monitor.utils import get_temperature_for_model, is_configured, load_config

CONFIG_YAML = """
openai:
  api_key: "${MONITOR_TEST_OPENAI_KEY}"
  model: "gpt-4"
slack:
  bot_token: "${MONITOR_TEST_UNSET_TOKEN}"
  app_token: "xapp-literal"
  channels:
    main: "${MONITOR_TEST_MAIN_CHANNEL}"
"""


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.setenv("MONITOR_TEST_OPENAI_KEY", "sk-from-env")
    monkeypatch.setenv("MONITOR_TEST_MAIN_CHANNEL", "CMAIN")
    monkeypatch.delenv("MONITOR_TEST_UNSET_TOKEN", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture(autouse=True)
def reset_global_manager():
    previous = config_manager._global_config_manager
    yield
    set_global_config_manager(previous)


def test_load_config_expands_environment_references(config_path):
    config = load_config(str(config_path), use_global_manager=False)

    assert config["openai"]["api_key"] == "sk-from-env"
    assert config["slack"]["channels"]["main"] == "CMAIN"
    # Unset variables stay literal so callers can tell they are missing.
    assert config["slack"]["bot_token"] == "${MONITOR_TEST_UNSET_TOKEN}"
    assert not is_configured(config["slack"]["bot_token"])


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"), use_global_manager=False)


def test_manager_warns_about_unresolved_secrets(config_path, caplog):
    with caplog.at_level(logging.WARNING, logger="slack_monitor.config_manager"):
        manager = ConfigManager(str(config_path))

    assert "slack.bot_token is not configured" in caplog.text
    assert "openai.api_key" not in caplog.text
    assert manager.get_config()["slack"]["app_token"] == "xapp-literal"


def test_global_manager_is_shared_and_replaceable(config_path):
    manager = ConfigManager(str(config_path))
    set_global_config_manager(manager)

    assert get_global_config_manager() is manager
    assert get_global_config_manager().get_config()["openai"]["api_key"] == "sk-from-env"
    assert load_config("ignored.yaml")["openai"]["model"] == "gpt-4"


def test_reload_picks_up_file_changes(config_path):
    manager = ConfigManager(str(config_path))
    config_path.write_text(CONFIG_YAML.replace('"gpt-4"', '"gpt-4o"'))

    assert manager.reload_config()["openai"]["model"] == "gpt-4o"


def test_is_configured_and_temperature():
    assert is_configured("value")
    assert not is_configured("")
    assert not is_configured(None)
    assert not is_configured("${SOMETHING}")
    assert get_temperature_for_model({"openai": {"model": "gpt-4"}}) == 0.1
    assert get_temperature_for_model({"openai": {"model": "gpt-4", "temperature": 0.3}}) == 0.3
    assert get_temperature_for_model({"openai": {"model": "o1-preview"}}) == 1.0
