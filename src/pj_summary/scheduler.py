"""Periodic snapshot refresh job."""

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog

from pj_summary.config import get_settings
from pj_summary.refresher import RefreshReport, SnapshotRefresher

logger = structlog.get_logger(__name__)


class SnapshotScheduler:
    """Runs a full snapshot refresh pass at a fixed interval.

    A failing pass is logged and the loop waits for the next tick.
    """

    def __init__(
        self,
        refresher: SnapshotRefresher,
        interval_seconds: float | None = None,
    ):
        settings = get_settings()
        self._refresher = refresher
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else settings.snapshot_refresh_interval_seconds
        )
        self._is_running = False
        self._runs = 0
        self._last_run_at: datetime | None = None
        self._last_report: RefreshReport | None = None
        self._logger = logger.bind(component="snapshot_scheduler")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._is_running

    @property
    def interval(self) -> float:
        return self._interval

    async def run_once(self) -> RefreshReport | None:
        """Run one refresh pass. Returns ``None`` if the pass failed."""
        self._runs += 1
        self._last_run_at = datetime.now(UTC)
        try:
            report = await self._refresher.refresh_all_active_account_snapshots()
        except Exception as e:
            self._logger.exception("snapshot_refresh_pass_failed", error=str(e))
            return None
        self._last_report = report
        return report

    async def start(self, max_runs: int | None = None) -> None:
        """Refresh now and then every ``interval`` seconds until stopped.

        Args:
            max_runs: Optional number of passes after which the loop ends.
        """
        self._is_running = True
        runs = 0
        self._logger.info("scheduler_started", interval_seconds=self._interval)

        while self._is_running:
            await self.run_once()
            runs += 1
            if max_runs and runs >= max_runs:
                break

            elapsed = 0.0
            while elapsed < self._interval and self._is_running:
                step = min(0.5, self._interval - elapsed)
                await asyncio.sleep(step)
                elapsed += step

        self._is_running = False
        self._logger.info("scheduler_finished", runs=runs)

    def stop(self) -> None:
        """Stop the scheduler after the current pass."""
        self._is_running = False
        self._logger.info("scheduler_stopped")

    def get_status(self) -> dict[str, Any]:
        """Get current scheduler status."""
        report = self._last_report
        return {
            "is_running": self._is_running,
            "interval_seconds": self._interval,
            "runs": self._runs,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_refreshed": len(report.refreshed) if report else 0,
            "last_failed": len(report.failed) if report else 0,
        }
