"""
Interval scheduler for aggregation ticks
"""
from typing import Awaitable, Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from newsdesk.utils.logger import logger
from newsdesk.utils.models import utcnow

TICK_JOB_ID = "aggregation_tick"


class AggregationScheduler:
    """Fires an async tick on a fixed interval inside the running event loop"""

    def __init__(
        self,
        scheduler_config,
        tick: Callable[[], Awaitable[object]],
        housekeeping: Optional[List[Callable[[], None]]] = None,
    ):
        """
        Initialize scheduler

        Args:
            scheduler_config: SchedulerConfig section of the application config
            tick: Async function run once per interval
            housekeeping: Sync callables run hourly (rate limiter cleanup)
        """
        self.scheduler_config = scheduler_config
        self.tick = tick
        self.housekeeping = housekeeping or []
        self.scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self, run_immediately: bool = False) -> None:
        """Start the schedule; must be called with a running event loop"""
        if not self.scheduler_config.enabled:
            logger.info("Scheduler is disabled")
            return
        if self.running:
            return

        self.scheduler = AsyncIOScheduler()
        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = utcnow()

        # The service skips overlapping ticks itself; these keep APScheduler from piling them up
        self.scheduler.add_job(
            func=self._run_tick,
            trigger=IntervalTrigger(minutes=self.scheduler_config.interval_minutes),
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )

        for index, func in enumerate(self.housekeeping):
            self.scheduler.add_job(
                func=func,
                trigger=IntervalTrigger(hours=1),
                id=f"housekeeping_{index}",
                replace_existing=True,
            )

        self.scheduler.start()
        logger.info(f"Scheduled: Running every {self.scheduler_config.interval_minutes} minutes")

    def shutdown(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self.scheduler = None

    async def _run_tick(self) -> None:
        logger.info("Scheduled aggregation tick starting")
        try:
            await self.tick()
        except Exception as e:
            logger.error(f"Error in scheduled run: {e}")
