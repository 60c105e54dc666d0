#!/usr/bin/env python3
"""
Slack Project Monitor - Main Application

Runs the dashboard API together with Slack ingestion and message enrichment.
"""

import sys
import logging
from pathlib import Path
from dotenv import load_dotenv

import uvicorn

# Load environment variables from .env file
project_root = Path(__file__).parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path, override=False)
else:
    # Fallback to find_dotenv() behavior
    load_dotenv(override=False)

from slack_monitor.utils import load_config, setup_logging, ensure_directories, is_configured


logger = logging.getLogger(__name__)


def main():
    """Main application entry point."""
    try:
        ensure_directories()

        config = load_config()

        setup_logging(config)

        logger.info("Starting Slack Project Monitor")

        if not is_configured(config.get('openai', {}).get('api_key')):
            # The API still serves rollups; new messages just stay unenriched.
            logger.warning("OPENAI_API_KEY not set; enrichment will be disabled")

        server_cfg = config.get('server', {})
        uvicorn.run(
            "api_server:app",
            host=server_cfg.get('host', '0.0.0.0'),
            port=int(server_cfg.get('port', 3001)),
            log_level=str(config.get('logging', {}).get('level', 'INFO')).lower(),
        )

    except KeyboardInterrupt:
        print("\n\nGoodbye!")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
