"""Tests for the APScheduler-backed sync scheduler."""

import logging
from datetime import timedelta
from unittest.mock import MagicMock

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.schedulers.background import BackgroundScheduler

from omnivore_sync.scheduler import (
    SYNC_JOB_ID,
    WATCH_JOB_ID,
    SyncScheduler,
    _job_listener,
)


def _scheduler(**kwargs) -> tuple[SyncScheduler, BackgroundScheduler]:
    backend = BackgroundScheduler(timezone="UTC")
    run_sync = kwargs.pop("run_sync", MagicMock(return_value="succeeded"))
    return SyncScheduler(run_sync=run_sync, scheduler=backend, **kwargs), backend


class TestReconfigure:
    def test_adds_interval_job(self):
        sched, backend = _scheduler()

        sched.reconfigure(15)

        job = backend.get_job(SYNC_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=15)
        assert job.max_instances == 1
        assert job.coalesce is True
        assert sched.interval == 15

    def test_zero_removes_job(self):
        sched, backend = _scheduler()
        sched.reconfigure(15)

        sched.reconfigure(0)

        assert backend.get_job(SYNC_JOB_ID) is None
        assert sched.interval == 0

    def test_replaces_previous_interval(self):
        sched, backend = _scheduler()
        sched.reconfigure(15)

        sched.reconfigure(60)

        jobs = [j for j in backend.get_jobs() if j.id == SYNC_JOB_ID]
        assert len(jobs) == 1
        assert jobs[0].trigger.interval == timedelta(minutes=60)

    def test_zero_when_no_job_is_noop(self):
        sched, backend = _scheduler()
        sched.reconfigure(0)
        assert backend.get_jobs() == []


class TestLifecycle:
    def test_start_registers_watch_job(self):
        backend = MagicMock()
        backend.get_jobs.return_value = []
        watcher = MagicMock()
        sched = SyncScheduler(
            run_sync=MagicMock(), watcher=watcher, watch_seconds=5, scheduler=backend
        )

        sched.start()

        backend.add_listener.assert_called_once()
        kwargs = backend.add_job.call_args.kwargs
        assert kwargs["id"] == WATCH_JOB_ID
        assert kwargs["func"] is watcher.check
        assert kwargs["trigger"].interval == timedelta(seconds=5)
        backend.start.assert_called_once()

    def test_start_without_watcher(self):
        backend = MagicMock()
        backend.get_jobs.return_value = []
        sched = SyncScheduler(run_sync=MagicMock(), scheduler=backend)

        sched.start()

        backend.add_job.assert_not_called()
        backend.start.assert_called_once()

    def test_shutdown_only_when_running(self):
        backend = MagicMock()
        backend.running = False
        sched = SyncScheduler(run_sync=MagicMock(), scheduler=backend)

        sched.shutdown()
        backend.shutdown.assert_not_called()

        backend.running = True
        sched.shutdown(wait=False)
        backend.shutdown.assert_called_once_with(wait=False)


class TestStatus:
    def test_disabled(self):
        sched, _ = _scheduler()
        assert sched.status() == {
            "job_id": None,
            "interval_minutes": 0,
            "next_run_time": None,
            "running": False,
        }

    def test_pending_job(self):
        sched, _ = _scheduler()
        sched.reconfigure(30)

        status = sched.status()

        assert status["job_id"] == SYNC_JOB_ID
        assert status["interval_minutes"] == 30
        assert status["running"] is False


class TestJobListener:
    def test_logs_failure(self, caplog):
        event = JobExecutionEvent(
            EVENT_JOB_ERROR, SYNC_JOB_ID, "default", None, exception=RuntimeError("boom")
        )
        with caplog.at_level(logging.ERROR, logger="omnivore_sync.scheduler"):
            _job_listener(event)
        assert "FAILED: omnivore_sync" in caplog.text

    def test_logs_missed(self, caplog):
        event = JobExecutionEvent(EVENT_JOB_MISSED, SYNC_JOB_ID, "default", None)
        with caplog.at_level(logging.WARNING, logger="omnivore_sync.scheduler"):
            _job_listener(event)
        assert "MISSED: omnivore_sync" in caplog.text

    def test_logs_completion_with_return_value(self, caplog):
        event = JobExecutionEvent(
            EVENT_JOB_EXECUTED, SYNC_JOB_ID, "default", None, retval="succeeded"
        )
        with caplog.at_level(logging.INFO, logger="omnivore_sync.scheduler"):
            _job_listener(event)
        assert "return=succeeded" in caplog.text

    def test_watch_job_completion_is_quiet(self, caplog):
        event = JobExecutionEvent(EVENT_JOB_EXECUTED, WATCH_JOB_ID, "default", None)
        with caplog.at_level(logging.INFO, logger="omnivore_sync.scheduler"):
            _job_listener(event)
        assert caplog.text == ""
