"""
Job Scheduler

Runs the archive job once a day and position capture on a fixed interval.
Jobs are plain callables ("run once" functions); the scheduler only decides
when to call them, so tests drive it with ``run_pending(now)`` instead of
waiting on real time.

Usage:
    scheduler = Scheduler()
    scheduler.add_job("archive", DailySchedule(4, 0), pipeline.run_archive)
    scheduler.add_job("positions", IntervalSchedule(30), tracker.capture, run_immediately=True)
    scheduler.start()
    ...
    scheduler.stop()
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DailySchedule:
    """Once a day at hour:minute UTC."""

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be 0-23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute must be 0-59, got {self.minute}")

    def next_after(self, now: datetime) -> datetime:
        """Next hour:minute strictly after ``now``.

        Examples:
            >>> DailySchedule(4).next_after(datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc))
            datetime.datetime(2024, 5, 1, 4, 0, tzinfo=datetime.timezone.utc)
        """
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


@dataclass(frozen=True)
class IntervalSchedule:
    """Every ``seconds`` seconds."""

    seconds: float

    def __post_init__(self) -> None:
        if self.seconds <= 0:
            raise ValueError(f"seconds must be positive, got {self.seconds}")

    def next_after(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.seconds)


@dataclass
class ScheduledJob:
    name: str
    schedule: DailySchedule | IntervalSchedule
    func: Callable[[], Any]
    next_run: datetime
    runs: int = 0
    failures: int = 0
    last_result: Any = field(default=None, repr=False)


class Scheduler:
    """Single-threaded ticker over a set of scheduled jobs.

    Jobs run one at a time on the scheduler thread. A job that raises is
    logged and retried at its next scheduled time.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        tick_seconds: float = 1.0,
    ):
        self._clock = clock
        self.tick_seconds = tick_seconds
        self.jobs: dict[str, ScheduledJob] = {}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def add_job(
        self,
        name: str,
        schedule: DailySchedule | IntervalSchedule,
        func: Callable[[], Any],
        run_immediately: bool = False,
    ) -> ScheduledJob:
        """Register a job; it first runs at its next scheduled time."""
        if name in self.jobs:
            raise ValueError(f"Job already scheduled: {name}")

        now = self._clock()
        job = ScheduledJob(
            name=name,
            schedule=schedule,
            func=func,
            next_run=now if run_immediately else schedule.next_after(now),
        )
        self.jobs[name] = job
        logger.info("Scheduled %s, next run at %s", name, job.next_run.isoformat())
        return job

    def run_pending(self, now: datetime | None = None) -> list[str]:
        """Run every job that is due at ``now``.

        Returns:
            Names of the jobs that ran
        """
        now = now or self._clock()
        ran = []
        for job in list(self.jobs.values()):
            if job.next_run > now:
                continue

            logger.debug("Running scheduled job %s", job.name)
            try:
                job.last_result = job.func()
            except Exception:
                job.failures += 1
                logger.exception("Scheduled job %s failed", job.name)
            job.runs += 1
            job.next_run = job.schedule.next_after(now)
            ran.append(job.name)
        return ran

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Tick until ``stop_event`` (or ``stop()``) is set."""
        stop_event = stop_event or self._stop
        while not stop_event.is_set():
            self.run_pending()
            stop_event.wait(self.tick_seconds)

    def start(self) -> threading.Thread:
        """Run the ticker in a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread

        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            name="telemetry-scheduler",
            daemon=True,
            kwargs={"stop_event": self._stop},
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
