"""
Global ConfigManager singleton.

Provides one process-wide configuration instance. Services receive the
config dict explicitly; only entry points should reach for the global.
"""

import logging
from typing import Dict, Any, Optional
from pathlib import Path

from .utils import is_configured

logger = logging.getLogger(__name__)

_global_config_manager: Optional['ConfigManager'] = None

# (config section, key, environment variable hint)
REQUIRED_SECRETS = (
    ("openai", "api_key", "OPENAI_API_KEY"),
    ("slack", "bot_token", "SLACK_BOT_TOKEN"),
    ("slack", "app_token", "SLACK_APP_TOKEN"),
)


class ConfigManager:
    """Holds the loaded configuration and supports reloading it from disk."""

    def __init__(self, config_path: str = "config.yaml"):
        from .utils import load_config as _load_config
        self.config_path = Path(config_path)
        self.config = _load_config(str(self.config_path), use_global_manager=False)
        self._verify_secrets()
        logger.info("[CONFIG MANAGER] ConfigManager initialized from %s", self.config_path)

    def _verify_secrets(self) -> None:
        """Log (without raising) every required secret that did not resolve."""
        for section, key, env_name in REQUIRED_SECRETS:
            value = (self.config.get(section) or {}).get(key)
            if not is_configured(value):
                logger.warning(
                    "[CONFIG MANAGER] %s.%s is not configured; set %s in .env or the environment",
                    section,
                    key,
                    env_name,
                )

    def get_config(self) -> Dict[str, Any]:
        """Get current configuration."""
        return self.config.copy()

    def reload_config(self) -> Dict[str, Any]:
        """Reload configuration from file."""
        from .utils import load_config as _load_config
        self.config = _load_config(str(self.config_path), use_global_manager=False)
        self._verify_secrets()
        logger.info("[CONFIG MANAGER] Config reloaded from file")
        return self.config


def get_global_config_manager(config_path: str = "config.yaml") -> ConfigManager:
    """
    Get or create the global ConfigManager singleton.

    Args:
        config_path: Path to config file (only used on first call)
    """
    global _global_config_manager
    if _global_config_manager is None:
        _global_config_manager = ConfigManager(config_path)
    return _global_config_manager


def set_global_config_manager(manager: Optional[ConfigManager]):
    """Set the global ConfigManager instance (for testing or explicit initialization)."""
    global _global_config_manager
    _global_config_manager = manager
