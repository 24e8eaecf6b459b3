"""APScheduler wrapper owning the recurring sync trigger.

Two jobs run on a ``BackgroundScheduler`` (thread pool):

- ``omnivore_sync`` -- runs a sync every ``sync_interval`` minutes; absent
  when the interval is 0 (manual sync only).
- ``watch_config`` -- polls the config files through ``ConfigWatcher``
  so settings edits reconfigure the interval without a restart.

The sync job is registered with ``max_instances=1`` and ``coalesce=True``.
A tick that finds a run already in progress (manual or scheduled) is
skipped by the engine's lock rather than queued.
"""

import logging
from collections.abc import Callable
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config_loader import ConfigWatcher

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "omnivore_sync"
WATCH_JOB_ID = "watch_config"


# ---------------------------------------------------------------------------
# Event listener
# ---------------------------------------------------------------------------


def _job_listener(event):
    job_id = event.job_id
    if hasattr(event, "exception") and event.exception:
        logger.error("Scheduled job FAILED: %s | exception=%s", job_id, event.exception)
    elif event.code == EVENT_JOB_MISSED:
        logger.warning("Scheduled job MISSED: %s", job_id)
    elif job_id != WATCH_JOB_ID:
        logger.info("Scheduled job completed: %s | return=%s", job_id, event.retval)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class SyncScheduler:
    """Own the recurring sync timer and its lifecycle.

    Args:
        run_sync: Callable that performs one sync run.
        watcher: Optional config watcher polled by the ``watch_config`` job.
        watch_seconds: Polling period for the config watcher.
        scheduler: Injected APScheduler instance (a new
            ``BackgroundScheduler`` by default).
    """

    def __init__(
        self,
        run_sync: Callable[[], Any],
        watcher: ConfigWatcher | None = None,
        watch_seconds: int = 30,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self._run_sync = run_sync
        self._watcher = watcher
        self._watch_seconds = watch_seconds
        self._scheduler = scheduler or BackgroundScheduler()
        self._interval = 0
        self._scheduler.add_listener(
            _job_listener,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED,
        )

    @property
    def interval(self) -> int:
        """Current interval in minutes (0 means disabled)."""
        return self._interval

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def reconfigure(self, interval_minutes: int) -> None:
        """Tear down the sync job and recreate it with a new interval.

        Args:
            interval_minutes: Minutes between runs; 0 disables the job.
        """
        if self._scheduler.get_job(SYNC_JOB_ID) is not None:
            self._scheduler.remove_job(SYNC_JOB_ID)

        self._interval = max(0, int(interval_minutes))
        if self._interval == 0:
            logger.info("Automatic sync disabled")
            return

        self._scheduler.add_job(
            func=self._run_sync,
            trigger=IntervalTrigger(minutes=self._interval),
            id=SYNC_JOB_ID,
            name="Omnivore sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Automatic sync every %d minute(s)", self._interval)

    def start(self) -> None:
        """Register the config watcher job and start the scheduler."""
        if self._watcher is not None:
            self._scheduler.add_job(
                func=self._watcher.check,
                trigger=IntervalTrigger(seconds=self._watch_seconds),
                id=WATCH_JOB_ID,
                name="Watch configuration",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

        self._scheduler.start()

        for job in self._scheduler.get_jobs():
            logger.info("Registered job: %s | next_run=%s", job.id, job.next_run_time)

    def shutdown(self, wait: bool = True) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler shut down")

    def status(self) -> dict:
        """Return the sync job's schedule."""
        job = self._scheduler.get_job(SYNC_JOB_ID)
        next_run = getattr(job, "next_run_time", None) if job else None
        return {
            "job_id": SYNC_JOB_ID if job else None,
            "interval_minutes": self._interval,
            "next_run_time": next_run.isoformat() if next_run else None,
            "running": self.running,
        }
