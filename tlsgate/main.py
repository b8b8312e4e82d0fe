"""tlsgate application factory + lifespan lifecycle.

This module implements:
  - install()    — add tlsgate to an existing Starlette/FastAPI app
  - create_app() — testable reference application (FastAPI) with tlsgate installed
  - lifespan     — startup/shutdown: load settings, start/stop the config watcher
  - /health      — reports the active mode and rule count

Startup sequence:
  1. load_settings()         → published to the pipeline's SettingsStore
                               (skipped when settings were passed to create_app)
  2. config file watcher     → asyncio.Task running SettingsStore.start_watcher()
  3. app.state.ready = True

Shutdown (reverse): ready = False → cancel watcher.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.routing import APIRouter
from starlette.applications import Starlette

from tlsgate.config import Settings, load_settings
from tlsgate.enrichment.enrichers import ResponseEnricher
from tlsgate.evaluation.overrides import RequestOverrider
from tlsgate.middleware import SecuritySwitchMiddleware
from tlsgate.pipeline import SecurityPipeline
from tlsgate.store import SettingsStore
from tlsgate.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

health_router = APIRouter(tags=["health"])


@health_router.get("/health")
async def health(request: Request) -> dict:
    """Liveness + active configuration summary."""
    settings = request.app.state.pipeline.store.get()
    if settings is None:
        return {"status": "starting"}
    return {
        "status": "ok",
        "mode": settings.mode.value,
        "rules": len(settings.rules),
        "bypass_security_warning": settings.bypass_security_warning,
    }


# ─── Installation ─────────────────────────────────────────────────────────────


def install(
    app: Starlette,
    settings: Optional[Settings] = None,
    overriders: Iterable[RequestOverrider] = (),
    enrichers: Optional[Iterable[ResponseEnricher]] = None,
) -> SecurityPipeline:
    """Add the tlsgate middleware to ``app`` and return its pipeline.

    The pipeline is also stored on ``app.state.pipeline`` so handlers and
    startup code can register hooks or publish new settings later.
    """
    pipeline = SecurityPipeline(
        SettingsStore(settings),
        overriders=overriders,
        enrichers=enrichers,
    )
    app.add_middleware(SecuritySwitchMiddleware, pipeline=pipeline)
    app.state.pipeline = pipeline
    return pipeline


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load settings if none were provided, and watch the config file."""
    logger.info("tlsgate starting up...")
    store: SettingsStore = app.state.pipeline.store

    # load_settings() raises SystemExit on an invalid config file.
    if store.get() is None:
        store.publish(load_settings(app.state.config_path))
    settings = store.get()
    assert settings is not None

    watcher_task: Optional[asyncio.Task[None]] = None
    if app.state.watch_config and settings.path:
        watcher_task = asyncio.create_task(store.start_watcher(settings.path))
    else:
        logger.debug("Config file watcher disabled")

    app.state.ready = True
    logger.info("tlsgate ready", mode=settings.mode.value, rules=len(settings.rules))

    yield

    app.state.ready = False
    if watcher_task is not None:
        watcher_task.cancel()
        try:
            await watcher_task
        except asyncio.CancelledError:
            pass
    logger.info("tlsgate shut down")


# ─── Application factory ──────────────────────────────────────────────────────


def create_app(
    settings: Optional[Settings] = None,
    config_path: Optional[str] = None,
    watch_config: bool = True,
    overriders: Iterable[RequestOverrider] = (),
    enrichers: Optional[Iterable[ResponseEnricher]] = None,
) -> FastAPI:
    """Build the reference FastAPI application with tlsgate installed.

    Args:
        settings:     Pre-built settings (tests). When None, the lifespan
                      loads them from ``config_path`` / the search path.
        config_path:  Explicit config file to load at startup.
        watch_config: Hot-reload the config file while running.
        overriders:   Override handlers, in registration order.
        enrichers:    Response enrichers; None installs the defaults.
    """
    application = FastAPI(title="tlsgate", lifespan=lifespan)
    application.state.config_path = config_path
    application.state.watch_config = watch_config
    application.state.ready = False
    application.include_router(health_router)
    install(application, settings, overriders=overriders, enrichers=enrichers)
    return application
