"""
HR Timeout Agent - Runs the HR approval timeout sweep on a fixed schedule.
"""

import asyncio
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from requisition_lifecycle_api.application.interfaces.di_container import get_timeout_sweeper
from requisition_lifecycle_api.application.services.timeout_sweeper import HrTimeoutSweeper
from shared.config.settings import settings
from shared.utils.logging_config import get_logger

SWEEP_JOB_ID = "hr_approval_timeout_sweep"


class HrTimeoutAgent:
    """Schedules HrTimeoutSweeper.run until the shutdown event is set."""

    def __init__(self,
                 shutdown_event: asyncio.Event = None,
                 sweeper: Optional[HrTimeoutSweeper] = None,
                 interval_minutes: int = None):
        self.agent_name = "HrTimeoutAgent"
        self.logger = get_logger(self.agent_name)
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.sweeper = sweeper or get_timeout_sweeper()
        self.interval_minutes = interval_minutes or settings.hr_timeout_sweep_interval_minutes
        self.scheduler: Optional[AsyncIOScheduler] = None

    async def sweep(self) -> None:
        """Scheduled job; a failed run is logged and retried on the next tick."""
        try:
            await self.sweeper.run()
        except Exception as e:
            self.logger.error(f"HR timeout sweep failed: {e}", exc_info=True)

    def start_scheduler(self) -> AsyncIOScheduler:
        self.scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
        self.scheduler.add_job(
            self.sweep,
            trigger=IntervalTrigger(minutes=self.interval_minutes, timezone=settings.scheduler_timezone),
            id=SWEEP_JOB_ID,
            name="Auto-reject requisitions past the HR approval timeout",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.logger.info(
            f"{self.agent_name} scheduler started",
            extra={"interval_minutes": self.interval_minutes, "timezone": settings.scheduler_timezone}
        )
        return self.scheduler

    def stop_scheduler(self) -> None:
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info(f"{self.agent_name} scheduler stopped")
        self.scheduler = None

    async def run(self) -> None:
        self.logger.info(f"Starting {self.agent_name}...")
        try:
            self.start_scheduler()
            await self.shutdown_event.wait()
            self.logger.info(f"{self.agent_name} shut down gracefully")
        except asyncio.CancelledError:
            self.logger.info(f"{self.agent_name} cancelled")
        finally:
            self.stop_scheduler()
