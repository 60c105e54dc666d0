"""
FastAPI server exposing dashboard rollups for the Slack project monitor.

Background services (enrichment worker, backlog sweeper, Slack listener) are
started by the startup hook and stopped in reverse order on shutdown.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

# Load .env file explicitly before importing anything that needs config
project_root = Path(__file__).resolve().parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)
else:
    load_dotenv(override=False)

# Ensure project root is in Python path for absolute imports
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from slack_monitor.automation import BacklogSweeper, EnrichmentWorker
from slack_monitor.config_manager import get_global_config_manager
from slack_monitor.enrichment import BacklogScheduler, MessageAnalyzer
from slack_monitor.ingestion import (
    EventNormalizer,
    IngestionService,
    SlackConfigError,
    build_channel_map,
    validate_slack_config,
)
from slack_monitor.ingestion.listener import SlackEventListener
from slack_monitor.integrations import SlackAPIClient, SlackAPIError
from slack_monitor.llm import CompletionClient
from slack_monitor.models import ChannelKind
from slack_monitor.rollups import RollupService
from slack_monitor.services import MessageStore, MessageStoreError

logger = logging.getLogger(__name__)

app = FastAPI(title="Slack Project Monitor API")

config_manager = get_global_config_manager(os.getenv("SLACK_MONITOR_CONFIG", str(project_root / "config.yaml")))
_app_config_snapshot = config_manager.get_config()

# Configure CORS for the dashboard frontend
default_allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
allowed_origins_env = os.getenv("API_ALLOWED_ORIGINS")
if allowed_origins_env:
    allowed_origins = [origin.strip() for origin in allowed_origins_env.split(",") if origin.strip()]
else:
    allowed_origins = (_app_config_snapshot.get("server") or {}).get("cors_origins") or default_allowed_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Service globals; populated by the startup hook.
message_store: Optional[MessageStore] = None
completion_client: Optional[CompletionClient] = None
rollup_service: Optional[RollupService] = None
backlog_scheduler: Optional[BacklogScheduler] = None
enrichment_worker: Optional[EnrichmentWorker] = None
backlog_sweeper: Optional[BacklogSweeper] = None
slack_listener: Optional[SlackEventListener] = None
slack_client: Optional[SlackAPIClient] = None


def _require_rollups() -> RollupService:
    if rollup_service is None:
        raise HTTPException(status_code=503, detail="Rollup service not started")
    return rollup_service


def _require_scheduler() -> BacklogScheduler:
    if backlog_scheduler is None:
        raise HTTPException(status_code=503, detail="Enrichment not started")
    return backlog_scheduler


def _parse_channel_kind(value: str) -> ChannelKind:
    kind = ChannelKind.parse(value)
    if kind is None:
        raise HTTPException(status_code=400, detail=f"Unknown channel kind: {value}")
    return kind


def _parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date; expected YYYY-MM-DD")


@app.get("/health")
async def health_check():
    """Liveness plus store connectivity."""
    payload: Dict[str, Any] = {
        "status": "ok",
        "service": "Slack Project Monitor API",
        "enrichment": backlog_scheduler is not None,
        "slackListener": slack_listener is not None,
    }
    if message_store is None:
        payload["store"] = {"status": "not_started"}
        payload["status"] = "degraded"
        return payload
    payload["store"] = await message_store.health()
    if payload["store"].get("status") != "ok":
        payload["status"] = "degraded"
    return payload


@app.get("/api/dashboard")
async def get_dashboard():
    service = _require_rollups()
    try:
        return await service.dashboard()
    except Exception:
        logger.exception("[API] Dashboard request failed")
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard data")


@app.get("/api/activity/{channel_kind}")
async def get_activity(
    channel_kind: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> List[Dict[str, Any]]:
    kind = _parse_channel_kind(channel_kind)
    service = _require_rollups()
    try:
        return await service.activity(kind, limit=limit, offset=offset)
    except Exception:
        logger.exception("[API] Activity request failed for %s", kind.value)
        raise HTTPException(status_code=500, detail="Failed to fetch activity data")


@app.get("/api/team-workload")
async def get_team_workload() -> List[Dict[str, Any]]:
    service = _require_rollups()
    try:
        return await service.team_workload()
    except Exception:
        logger.exception("[API] Team workload request failed")
        raise HTTPException(status_code=500, detail="Failed to fetch team workload")


@app.get("/api/digest")
async def get_digest(date: Optional[str] = Query(None)):
    day = _parse_day(date)
    service = _require_rollups()
    try:
        return await service.digest(day)
    except Exception:
        logger.exception("[API] Digest request failed")
        raise HTTPException(status_code=500, detail="Failed to generate digest")


@app.get("/api/deliverables")
async def get_deliverables():
    service = _require_rollups()
    try:
        return await service.deliverables()
    except Exception:
        logger.exception("[API] Deliverables request failed")
        raise HTTPException(status_code=500, detail="Failed to fetch deliverables data")


@app.post("/api/enrichment/backlog")
async def run_backlog_batch():
    """Run one backlog batch now instead of waiting for the sweep."""
    scheduler = _require_scheduler()
    try:
        result = await scheduler.process_backlog_batch()
    except Exception:
        logger.exception("[API] Backlog batch failed")
        raise HTTPException(status_code=500, detail="Failed to process backlog")
    return result.to_dict()


async def _start_slack_listener(config: Dict[str, Any]) -> None:
    global slack_listener, slack_client

    slack_cfg = config.get("slack") or {}
    if not slack_cfg.get("enabled", True):
        logger.info("[STARTUP] Slack listener disabled via config")
        return
    try:
        validate_slack_config(config)
        slack_client = SlackAPIClient(bot_token=slack_cfg.get("bot_token"))
        identity = await asyncio.to_thread(slack_client.auth_test)
    except (SlackConfigError, SlackAPIError, requests.RequestException) as exc:
        logger.warning("[STARTUP] Slack listener not started: %s", exc)
        if slack_client is not None:
            slack_client.close()
            slack_client = None
        return
    logger.info("[STARTUP] Slack bot authenticated for team %s", identity.get("team"))

    normalizer = EventNormalizer(build_channel_map(config))
    ingestion = IngestionService(normalizer, message_store, slack_client, enrichment_worker)
    slack_listener = SlackEventListener(
        app_token=slack_cfg["app_token"],
        bot_token=slack_cfg["bot_token"],
        ingestion=ingestion,
        loop=asyncio.get_running_loop(),
    )
    slack_listener.start()


@app.on_event("startup")
async def startup_event():
    """Build services and start background work."""
    global message_store, completion_client, rollup_service
    global backlog_scheduler, enrichment_worker, backlog_sweeper

    config = config_manager.get_config()
    message_store = MessageStore(config)
    try:
        await message_store.ensure_indexes()
    except MessageStoreError as exc:
        logger.error("[STARTUP] Could not ensure indexes: %s", exc)
    rollup_service = RollupService(message_store, config)

    try:
        completion_client = CompletionClient(config)
    except ValueError as exc:
        logger.warning("[STARTUP] Enrichment disabled: %s", exc)
    else:
        enrichment_cfg = config.get("enrichment") or {}
        analyzer = MessageAnalyzer(completion_client, message_store)
        backlog_scheduler = BacklogScheduler.from_config(config, analyzer, message_store)
        enrichment_worker = EnrichmentWorker(analyzer, queue_size=enrichment_cfg.get("queue_size", 100))
        backlog_sweeper = BacklogSweeper(
            backlog_scheduler,
            interval=enrichment_cfg.get("sweep_interval_seconds", 300),
        )
        await enrichment_worker.start()
        await backlog_sweeper.start()

    await _start_slack_listener(config)
    logger.info("[STARTUP] Slack project monitor ready")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop background services on app shutdown."""
    global slack_listener, slack_client, backlog_sweeper, enrichment_worker
    global backlog_scheduler, completion_client, rollup_service, message_store

    if slack_listener is not None:
        logger.info("Stopping Slack listener...")
        slack_listener.stop()
        slack_listener = None
    if slack_client is not None:
        slack_client.close()
        slack_client = None
    if backlog_sweeper is not None:
        logger.info("Stopping backlog sweeper...")
        await backlog_sweeper.stop()
        backlog_sweeper = None
    if enrichment_worker is not None:
        logger.info("Stopping enrichment worker...")
        await enrichment_worker.stop()
        enrichment_worker = None
    backlog_scheduler = None
    if completion_client is not None:
        await completion_client.close()
        completion_client = None
    rollup_service = None
    if message_store is not None:
        message_store.close()
        message_store = None
