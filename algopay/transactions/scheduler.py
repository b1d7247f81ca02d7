"""
Periodic reconciliation runner.

Calls ``reconcile_pending`` on a fixed interval in a background task.
A pass that raises is logged and the loop carries on.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from algopay.transactions.config import SchedulerConfig
from algopay.transactions.lifecycle import TransactionLifecycleManager
from algopay.transactions.models import ReconciliationSummary

logger = structlog.get_logger()


class ReconciliationScheduler:
    """Runs reconciliation passes on an interval until stopped."""

    def __init__(
        self,
        manager: TransactionLifecycleManager,
        config: Optional[SchedulerConfig] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            manager: Lifecycle manager whose pending records are reconciled
            config: Scheduler configuration (defaults to the manager's)
        """
        self.manager = manager
        self.config = config or manager.config.scheduler

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_run_time: Optional[datetime] = None
        self._last_summary: Optional[ReconciliationSummary] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background loop."""
        if self._running:
            logger.warning("scheduler.already_running")
            return

        self._running = True
        logger.info(
            "scheduler.started",
            interval_seconds=self.config.interval_seconds,
            run_on_startup=self.config.run_on_startup,
        )
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        """Stop the background loop gracefully."""
        if not self._running:
            logger.debug("scheduler.not_running")
            return

        self._running = False
        logger.info("scheduler.stopping")

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("scheduler.stopped")

    async def run_once(self) -> Optional[ReconciliationSummary]:
        """Run one pass now, unless scheduling is disabled."""
        if not self.config.enabled:
            logger.debug("scheduler.disabled_skipping")
            return None

        summary = await self.manager.reconcile_pending()
        self._last_run_time = datetime.now(timezone.utc)
        self._last_summary = summary
        return summary

    async def _loop(self):
        first = True
        while self._running:
            try:
                if not (first and self.config.run_on_startup):
                    await asyncio.sleep(self.config.interval_seconds)
                first = False
                await self.run_once()

            except asyncio.CancelledError:
                logger.info("scheduler.loop_cancelled")
                break
            except Exception as e:
                logger.error(
                    "scheduler.pass_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(self.config.error_backoff_seconds)

    def get_status(self) -> Dict[str, Any]:
        """Current scheduler state plus reconciliation metrics."""
        metrics = self.manager.metrics
        last_run = metrics.get_last_run()
        return {
            "running": self._running,
            "enabled": self.config.enabled,
            "interval_seconds": self.config.interval_seconds,
            "last_run_time": (
                self._last_run_time.isoformat() if self._last_run_time else None
            ),
            "last_summary": self._last_summary.to_dict() if self._last_summary else None,
            "last_run": last_run.to_dict() if last_run else None,
            "metrics_24h": metrics.get_aggregate_metrics(hours=24).to_dict(),
        }
