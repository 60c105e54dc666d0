"""
Utility functions for configuration and logging.
"""

import os
import logging
import yaml
from pathlib import Path
from typing import Dict, Any
from dotenv import load_dotenv, find_dotenv


def load_config(config_path: str = "config.yaml", use_global_manager: bool = True) -> Dict[str, Any]:
    """
    Load configuration from YAML file or global ConfigManager.

    If the global ConfigManager is available its cached config is returned.
    Otherwise the YAML file is read and ``${VAR}`` values are expanded.

    Args:
        config_path: Path to config file (used if global manager not available)
        use_global_manager: If True, try to use global ConfigManager first

    Returns:
        Configuration dictionary
    """
    if use_global_manager:
        try:
            from ..config_manager import get_global_config_manager
            manager = get_global_config_manager(config_path)
            return manager.get_config()
        except (ImportError, AttributeError):
            # ConfigManager not initialized yet, fall back to file
            pass

    # Always prioritize the project-local .env so the value the developer edits wins.
    project_root = Path(__file__).resolve().parent.parent.parent
    explicit_env = project_root / ".env"
    dotenv_loaded = False

    if explicit_env.exists():
        load_dotenv(explicit_env, override=True)
        dotenv_loaded = True

    if not dotenv_loaded:
        env_path = find_dotenv(usecwd=True)
        if env_path:
            load_dotenv(env_path, override=True)
            dotenv_loaded = True

    if not dotenv_loaded:
        load_dotenv(override=False)

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    return _expand_env_vars(config)


def _expand_env_vars(config: Any) -> Any:
    """
    Recursively expand environment variables in config.

    Only whole-value references (``${VAR}``) are expanded. Unset variables
    keep their literal ``${VAR}`` form so callers can detect them.
    """
    if isinstance(config, dict):
        return {k: _expand_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_expand_env_vars(item) for item in config]
    elif isinstance(config, str):
        if config.startswith('${') and config.endswith('}'):
            var_name = config[2:-1]
            return os.getenv(var_name, config)
        return config
    else:
        return config


def is_configured(value: Any) -> bool:
    """Return True when a config value is present and not an unexpanded ``${VAR}``."""
    if value is None:
        return False
    if isinstance(value, str):
        stripped = value.strip()
        return bool(stripped) and not stripped.startswith("${")
    return True


def setup_logging(config: Dict[str, Any]):
    """
    Setup logging configuration.

    Args:
        config: Configuration dictionary
    """
    log_level = config.get('logging', {}).get('level', 'INFO')
    log_file = config.get('logging', {}).get('file', 'data/app.log')

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ]
    )

    # Reduce noise from some libraries
    logging.getLogger('openai').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('slack_sdk').setLevel(logging.WARNING)


def get_temperature_for_model(config: Dict[str, Any], default_temperature: float = 0.1) -> float:
    """
    Get appropriate temperature for the configured model.

    o-series models (o1, o3, o4) only support temperature=1.
    Other models use the config temperature or the provided default.
    """
    openai_config = config.get("openai", {})
    model = openai_config.get("model", "gpt-4")

    if model and model.startswith(("o1", "o3", "o4")):
        return 1.0

    return float(openai_config.get("temperature", default_temperature))


def ensure_directories():
    """Create necessary directories if they don't exist."""
    for directory in ('data', 'data/logs'):
        Path(directory).mkdir(parents=True, exist_ok=True)


__all__ = [
    'load_config',
    'is_configured',
    'setup_logging',
    'get_temperature_for_model',
    'ensure_directories',
]
