"""Lifecycle owner for the recurring analytics sweeps."""

from __future__ import annotations

import logging
import threading
from datetime import tzinfo
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .analytics_models import SweepReport
from .analytics_processor import AnalyticsProcessor, create_analytics_processor
from .config import Settings, get_settings
from .telemetry import emit_event
from .time_windows import Clock, SystemClock, TimeWindowPolicy, resolve_timezone

logger = logging.getLogger(__name__)

REGULAR_JOB_ID = "analytics_regular_sweep"
DAILY_JOB_ID = "analytics_daily_sweep"

SchedulerFactory = Callable[[], BaseScheduler]


class AnalyticsScheduler:
    """Starts an immediate sweep, then an interval sweep and a daily sweep at a fixed hour.

    A sweep kind never overlaps with itself: a firing that finds the previous run of
    the same kind still in progress is skipped.
    """

    def __init__(
        self,
        processor: AnalyticsProcessor,
        *,
        interval_minutes: int = 60,
        daily_hour: int = 2,
        timezone: Optional[tzinfo] = None,
        run_on_startup: bool = True,
        scheduler_factory: Optional[SchedulerFactory] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        if interval_minutes < 1:
            raise ValueError("interval_minutes must be at least 1")
        if not 0 <= daily_hour <= 23:
            raise ValueError("daily_hour must be within 0..23")
        self._processor = processor
        self._interval_minutes = interval_minutes
        self._daily_hour = daily_hour
        self._window_policy = TimeWindowPolicy(daily_hour=daily_hour)
        self._clock = clock or SystemClock(timezone)
        self._timezone = timezone
        self._run_on_startup = run_on_startup
        self._scheduler_factory = scheduler_factory or self._default_scheduler
        self._scheduler: Optional[BaseScheduler] = None
        self._running = False
        # Bumped by every start and stop; a start that lost its generation discards its timers.
        self._generation = 0
        self._state_lock = threading.Lock()
        self._sweep_locks = {"regular": threading.Lock(), "daily": threading.Lock()}

    @property
    def running(self) -> bool:
        return self._running

    def _default_scheduler(self) -> BaseScheduler:
        if self._timezone is None:
            return BackgroundScheduler()
        return BackgroundScheduler(timezone=self._timezone)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._state_lock:
            if self._running:
                logger.info("Analytics scheduler already running; start() ignored")
                return
            self._running = True
            self._generation += 1
            generation = self._generation

        logger.info(
            "Starting analytics scheduler (interval=%d min, daily hour=%02d:00)",
            self._interval_minutes,
            self._daily_hour,
        )
        if self._run_on_startup:
            self.run_regular_sweep()

        with self._state_lock:
            if generation != self._generation:
                logger.info("Analytics scheduler stopped during its startup sweep; no timers armed")
                return

        scheduler = self._scheduler_factory()
        scheduler.add_job(
            self._regular_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes, timezone=self._timezone),
            id=REGULAR_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_job(
            self._daily_job,
            trigger=CronTrigger(hour=self._daily_hour, minute=0, timezone=self._timezone),
            id=DAILY_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        scheduler.start()
        with self._state_lock:
            superseded = generation != self._generation
            if not superseded:
                self._scheduler = scheduler
        if superseded:
            scheduler.shutdown(wait=False)
            logger.info("Analytics scheduler stopped while arming timers; discarded them")
            return
        emit_event("scheduler_state", running=True)

    def stop(self) -> None:
        with self._state_lock:
            if not self._running:
                logger.info("Analytics scheduler is not running; stop() ignored")
                return
            self._running = False
            self._generation += 1
            scheduler, self._scheduler = self._scheduler, None

        if scheduler is not None:
            for job_id in (REGULAR_JOB_ID, DAILY_JOB_ID):
                if scheduler.get_job(job_id) is not None:
                    scheduler.remove_job(job_id)
            # In-flight sweeps finish on their own; no new firing can start.
            scheduler.shutdown(wait=False)
        logger.info("Analytics scheduler stopped")
        emit_event("scheduler_state", running=False)

    def get_status(self) -> Dict[str, Any]:
        next_run = None
        next_daily = None
        scheduler = self._scheduler
        if self._running and scheduler is not None:
            job = scheduler.get_job(REGULAR_JOB_ID)
            next_run = getattr(job, "next_run_time", None) if job is not None else None
            next_daily = self._window_policy.next_daily_run(self._clock.now())
        return {
            "running": self._running,
            "short_interval_ms": self._interval_minutes * 60 * 1000,
            "daily_hour": self._daily_hour,
            "next_short_sweep_at": next_run.isoformat() if next_run else None,
            "next_daily_sweep_at": next_daily.isoformat() if next_daily else None,
        }

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def run_regular_sweep(self) -> Optional[SweepReport]:
        return self._guarded("regular", self._processor.process_active_users)

    def run_daily_sweep(self) -> Optional[SweepReport]:
        return self._guarded("daily", self._processor.run_daily_processing)

    def _guarded(self, kind: str, sweep: Callable[[], SweepReport]) -> Optional[SweepReport]:
        lock = self._sweep_locks[kind]
        if not lock.acquire(blocking=False):
            logger.warning("Previous %s sweep still in progress; skipping this run", kind)
            return None
        try:
            return sweep()
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error in %s analytics sweep", kind)
            return None
        finally:
            lock.release()

    def _regular_job(self) -> None:
        if not self._running:
            return
        self.run_regular_sweep()

    def _daily_job(self) -> None:
        if not self._running:
            return
        self.run_daily_sweep()

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error("Scheduler job %s raised: %s", event.job_id, event.exception)


def create_analytics_scheduler(
    settings: Optional[Settings] = None,
    *,
    processor: Optional[AnalyticsProcessor] = None,
    scheduler_factory: Optional[SchedulerFactory] = None,
) -> AnalyticsScheduler:
    settings = settings or get_settings()
    timezone = resolve_timezone(settings.scheduler_timezone)
    if processor is None:
        processor = create_analytics_processor(settings, clock=SystemClock(timezone))
    return AnalyticsScheduler(
        processor,
        interval_minutes=settings.processing_interval_minutes,
        daily_hour=settings.daily_processing_hour,
        timezone=timezone,
        run_on_startup=settings.run_on_startup,
        scheduler_factory=scheduler_factory,
    )


__all__ = ["AnalyticsScheduler", "DAILY_JOB_ID", "REGULAR_JOB_ID", "create_analytics_scheduler"]
