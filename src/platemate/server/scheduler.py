"""Scheduler for automatic maintenance tasks.

This module provides:
- Periodic pruning of causal chains left in the action log
- Periodic pruning of requests that were never collected
- Manual prune function for CLI/API usage
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from platemate.concepts.requesting import RequestingConcept
    from platemate.engine.log import ActionLog

logger = logging.getLogger(__name__)


def prune_stale_state(
    log: ActionLog,
    requesting: RequestingConcept | None,
    retention_seconds: float,
) -> tuple[int, int]:
    """Prune chains and requests older than the retention period.

    Chains stay in the log when a request times out, when a cascade
    aborts, or when the server retains the log for inspection.

    Args:
        log: Action log to prune.
        requesting: Requesting concept (may be None).
        retention_seconds: Prune entries older than this many seconds.

    Returns:
        Tuple of (chains_pruned, requests_pruned).
    """
    chains_pruned = log.prune(retention_seconds)
    requests_pruned = requesting.prune(retention_seconds) if requesting else 0

    if chains_pruned or requests_pruned:
        logger.info(
            "Prune completed: %d chains and %d requests older than %ds removed",
            chains_pruned,
            requests_pruned,
            retention_seconds,
        )
    else:
        logger.debug("Prune: nothing older than %ds", retention_seconds)

    return chains_pruned, requests_pruned


class PruneScheduler:
    """Scheduler running prune_stale_state every retention period."""

    def __init__(
        self,
        log: ActionLog,
        requesting: RequestingConcept | None,
        retention_seconds: int = 300,
    ) -> None:
        """Initialize the scheduler.

        Args:
            log: Action log to prune.
            requesting: Requesting concept whose stale requests are pruned.
            retention_seconds: Retention period, also the job interval.
        """
        self._log = log
        self._requesting = requesting
        self._retention_seconds = retention_seconds
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        """Check whether the scheduler is started."""
        return self._scheduler is not None

    def _prune_job(self) -> None:
        """Job function for scheduled pruning."""
        try:
            prune_stale_state(self._log, self._requesting, self._retention_seconds)
        except Exception:
            logger.exception("Error during scheduled prune")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._prune_job,
            trigger=IntervalTrigger(seconds=self._retention_seconds),
            id="state_prune",
            name="Action log and request prune",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Prune scheduler started (every %ds)", self._retention_seconds)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Prune scheduler stopped")

    def run_now(self) -> tuple[int, int]:
        """Run the prune immediately (manual trigger).

        Returns:
            Tuple of (chains_pruned, requests_pruned).
        """
        return prune_stale_state(self._log, self._requesting, self._retention_seconds)
