"""FastAPI application for the PlateMate server.

This module creates and configures the FastAPI application with:
- Concept routes served by passthrough or by synchronizations
- Engine introspection routes
- A scheduler pruning stale action log chains and requests

Usage:
    uvicorn platemate.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator, Iterable
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from platemate.concepts import Requesting, build_registry
from platemate.core.config import PlateMateConfig
from platemate.engine.engine import SyncEngine
from platemate.engine.sync import Sync
from platemate.server.api.router import build_router
from platemate.server.database import Database
from platemate.server.passthrough import unverified_routes
from platemate.server.scheduler import PruneScheduler
from platemate.syncs import ALL_SYNCS

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_path: Path | None) -> None:
    """Configure logging to output to both file and stdout.

    Safe to call more than once; handlers are only added the first time.

    Args:
        log_path: Path to the log file, or None for stdout only.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for platemate
    root_logger = logging.getLogger("platemate")
    root_logger.setLevel(logging.INFO)
    if root_logger.handlers:
        return

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


logger = logging.getLogger(__name__)


def build_engine(
    db: Database,
    config: PlateMateConfig,
    syncs: Iterable[Sync] | None = None,
) -> SyncEngine:
    """Create the engine with every concept and synchronization registered.

    Args:
        db: Database backing persistent concepts.
        config: Server configuration.
        syncs: Synchronizations to register (default: ALL_SYNCS).

    Returns:
        Ready-to-use SyncEngine.
    """
    engine = SyncEngine(build_registry(db), max_cascade_depth=config.max_cascade_depth)
    engine.register(*(ALL_SYNCS if syncs is None else syncs))
    return engine


def create_app(
    db: Database,
    config: PlateMateConfig | None = None,
    syncs: Iterable[Sync] | None = None,
    scheduler: bool = True,
) -> FastAPI:
    """Create FastAPI application with a custom database and configuration.

    This is primarily used for testing with isolated databases.

    Args:
        db: Database instance.
        config: Optional configuration (default: from environment).
        syncs: Optional synchronizations (default: ALL_SYNCS).
        scheduler: Whether to run the prune scheduler.

    Returns:
        Configured FastAPI application.
    """
    config = config or PlateMateConfig.from_env()
    engine = build_engine(db, config, syncs)
    pruner = PruneScheduler(
        engine.log,
        engine.registry.concept(Requesting.name),
        config.log_retention_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("PlateMate Server Starting")
        logger.info("=" * 60)
        logger.info("  Database:  %s", db.path)
        logger.info("  Base URL:  %s", config.base_url or "/")
        logger.info("  Concepts:  %s", ", ".join(engine.registry.concepts()))
        logger.info("  Syncs:     %d", len(engine.syncs))
        logger.info("  Max depth: %d", engine.max_cascade_depth)
        logger.info("=" * 60)
        for route in unverified_routes(engine.registry):
            logger.warning("Unverified passthrough route: %s%s", config.base_url, route)
        if scheduler:
            pruner.start()

        yield

        # Shutdown
        pruner.stop()
        logger.info("PlateMate Server shutting down")

    application = FastAPI(
        title="PlateMate Server",
        description="Fitness tracking backend composed by synchronizations",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.config = config
    application.state.engine = engine
    application.state.pruner = pruner

    application.include_router(build_router(config.base_url))

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    config = PlateMateConfig.from_env()
    setup_logging(config.log_path)
    return create_app(db=Database(config.db_path), config=config)
