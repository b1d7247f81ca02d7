"""
Reconciliation metrics.

Tracks every reconciliation pass (counts, duration, errors) and keeps a
bounded in-memory history for status reporting.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, field, asdict
from enum import Enum


class RunStatus(str, Enum):
    """Status of a reconciliation pass."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Some records could not be checked
    FAILED = "failed"  # Pass aborted (e.g. store unreadable)


@dataclass
class ReconcileRunMetrics:
    """Metrics for a single reconciliation pass."""

    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: RunStatus = RunStatus.SUCCESS

    checked: int = 0
    confirmed: int = 0
    failed: int = 0
    still_pending: int = 0

    duration_seconds: float = 0.0

    errors: List[str] = field(default_factory=list)
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        data["status"] = self.status.value
        return data


@dataclass
class AggregateMetrics:
    """Aggregated metrics across multiple passes."""

    total_runs: int = 0
    successful_runs: int = 0
    partial_runs: int = 0
    failed_runs: int = 0

    total_checked: int = 0
    total_confirmed: int = 0
    total_failed: int = 0
    total_errors: int = 0

    avg_duration_seconds: float = 0.0

    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ["last_run", "last_success"]:
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class ReconciliationMetrics:
    """
    In-memory metrics tracker for reconciliation passes.

    Passes may overlap (a scheduled pass and a manual one), so each pass is
    tracked under its own run id rather than as a single "current run".
    """

    def __init__(self, history_size: int = 100):
        """
        Initialize metrics tracker.

        Args:
            history_size: Number of recent passes to keep in memory
        """
        self.history_size = history_size
        self._active: Dict[str, ReconcileRunMetrics] = {}
        self._history: List[ReconcileRunMetrics] = []
        self._run_counter = 0

    def start_run(self) -> str:
        """Start tracking a new pass and return its run id."""
        self._run_counter += 1
        now = datetime.now(timezone.utc)
        run_id = f"reconcile-{now.strftime('%Y%m%d-%H%M%S')}-{self._run_counter}"
        self._active[run_id] = ReconcileRunMetrics(run_id=run_id, started_at=now)
        return run_id

    def record_outcome(self, run_id: str, status: str):
        """Record one checked record; ``status`` is the reported status or 'error'."""
        run = self._active.get(run_id)
        if not run:
            return
        run.checked += 1
        if status == "confirmed":
            run.confirmed += 1
        elif status == "failed":
            run.failed += 1
        elif status == "pending":
            run.still_pending += 1

    def record_error(self, run_id: str, error: str):
        """Record an error during a pass."""
        run = self._active.get(run_id)
        if run:
            run.errors.append(error)
            run.error_count += 1

    def end_run(self, run_id: str, status: Optional[RunStatus] = None) -> Optional[ReconcileRunMetrics]:
        """
        Finish a pass.

        Args:
            run_id: Pass to finish
            status: Final status; derived from the error count when omitted
        """
        run = self._active.pop(run_id, None)
        if not run:
            return None

        run.ended_at = datetime.now(timezone.utc)
        run.duration_seconds = (run.ended_at - run.started_at).total_seconds()
        if status is None:
            status = RunStatus.PARTIAL if run.error_count else RunStatus.SUCCESS
        run.status = status

        self._history.append(run)
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]
        return run

    def get_last_run(self) -> Optional[ReconcileRunMetrics]:
        """Get metrics for the most recent completed pass."""
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[ReconcileRunMetrics]:
        """Get recent passes, newest first."""
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        """
        Get aggregated metrics across recent passes.

        Args:
            hours: Only include passes from the last N hours (None = all history)
        """
        runs = self._history
        if hours:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            runs = [r for r in runs if r.started_at >= cutoff]

        metrics = AggregateMetrics()
        if not runs:
            return metrics

        metrics.total_runs = len(runs)
        for run in runs:
            if run.status == RunStatus.SUCCESS:
                metrics.successful_runs += 1
                metrics.last_success = run.started_at
            elif run.status == RunStatus.PARTIAL:
                metrics.partial_runs += 1
            elif run.status == RunStatus.FAILED:
                metrics.failed_runs += 1

        metrics.total_checked = sum(r.checked for r in runs)
        metrics.total_confirmed = sum(r.confirmed for r in runs)
        metrics.total_failed = sum(r.failed for r in runs)
        metrics.total_errors = sum(r.error_count for r in runs)
        metrics.avg_duration_seconds = (
            sum(r.duration_seconds for r in runs) / metrics.total_runs
        )
        metrics.last_run = runs[-1].started_at
        return metrics
