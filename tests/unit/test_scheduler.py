"""
Scheduler tests, driven with explicit times instead of real waiting.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

T0 = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)


class TestDailySchedule:
    def test_later_today(self):
        from telemetry_archive.scheduler import DailySchedule

        assert DailySchedule(4, 30).next_after(T0) == datetime(2024, 5, 1, 4, 30, tzinfo=timezone.utc)

    def test_rolls_to_tomorrow_when_passed(self):
        from telemetry_archive.scheduler import DailySchedule

        now = datetime(2024, 5, 1, 4, 0, tzinfo=timezone.utc)

        assert DailySchedule(4, 0).next_after(now) == datetime(2024, 5, 2, 4, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("hour, minute", [(24, 0), (-1, 0), (4, 60)])
    def test_invalid_time(self, hour, minute):
        from telemetry_archive.scheduler import DailySchedule

        with pytest.raises(ValueError):
            DailySchedule(hour, minute)

    def test_interval_must_be_positive(self):
        from telemetry_archive.scheduler import IntervalSchedule

        with pytest.raises(ValueError):
            IntervalSchedule(0)


class TestRunPending:
    def make_scheduler(self):
        from telemetry_archive.scheduler import Scheduler

        return Scheduler(clock=lambda: T0)

    def test_job_runs_when_due(self):
        from telemetry_archive.scheduler import DailySchedule

        scheduler = self.make_scheduler()
        calls = []
        scheduler.add_job("archive", DailySchedule(4), lambda: calls.append("ran"))

        assert scheduler.run_pending(T0 + timedelta(minutes=59)) == []
        assert scheduler.run_pending(T0 + timedelta(hours=1)) == ["archive"]
        assert calls == ["ran"]
        assert scheduler.jobs["archive"].next_run == datetime(2024, 5, 2, 4, 0, tzinfo=timezone.utc)

    def test_run_immediately(self):
        from telemetry_archive.scheduler import IntervalSchedule

        scheduler = self.make_scheduler()
        scheduler.add_job("positions", IntervalSchedule(30), lambda: 3, run_immediately=True)

        assert scheduler.run_pending(T0) == ["positions"]
        assert scheduler.jobs["positions"].last_result == 3
        assert scheduler.jobs["positions"].next_run == T0 + timedelta(seconds=30)

    def test_failing_job_logged_and_rescheduled(self, caplog):
        from telemetry_archive.scheduler import IntervalSchedule

        def boom():
            raise RuntimeError("snapshot unreadable")

        scheduler = self.make_scheduler()
        scheduler.add_job("positions", IntervalSchedule(30), boom, run_immediately=True)

        with caplog.at_level("ERROR"):
            scheduler.run_pending(T0)

        job = scheduler.jobs["positions"]
        assert job.failures == 1
        assert job.runs == 1
        assert job.next_run == T0 + timedelta(seconds=30)
        assert "positions failed" in caplog.text

    def test_duplicate_name_rejected(self):
        from telemetry_archive.scheduler import IntervalSchedule

        scheduler = self.make_scheduler()
        scheduler.add_job("positions", IntervalSchedule(30), lambda: None)

        with pytest.raises(ValueError, match="already scheduled"):
            scheduler.add_job("positions", IntervalSchedule(60), lambda: None)


class TestThread:
    def test_start_and_stop(self):
        from telemetry_archive.scheduler import IntervalSchedule, Scheduler

        ran = threading.Event()
        scheduler = Scheduler(tick_seconds=0.01)
        scheduler.add_job("positions", IntervalSchedule(60), ran.set, run_immediately=True)

        thread = scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.stop()

        assert not thread.is_alive()
