"""
Pytest configuration and fixtures for test environment.

This file provides:
- Import path setup for the flat project layout
- A minimal in-memory configuration (no secrets, no network)
- Markers for unit/integration selection
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path
BASE_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BASE_DIR))


@pytest.fixture(scope="function")
def test_config():
    """Provide a configuration that never reaches external services."""
    return {
        "openai": {"api_key": "sk-test", "model": "gpt-4", "max_tokens": 1000, "temperature": 0.1},
        "slack": {
            "enabled": False,
            "bot_token": "xoxb-test",
            "app_token": "xapp-test",
            "channels": {"main": "CMAIN", "production": "CPROD", "client": "CCLIENT"},
        },
        "mongo": {"uri": "mongodb://127.0.0.1:27017", "database": "test-db", "collection": "messages"},
        "enrichment": {"batch_size": 10, "call_delay_seconds": 0, "sweep_interval_seconds": 300},
        "rollups": {"timezone": "UTC", "urgent_limit": 10, "trailing_window_hours": 24},
    }


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("TEST_MODE", "true")


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on file location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
