"""Daily adhan scheduling using APScheduler."""

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from . import PRAYER_NAMES, TEST
from .announcer import AnnouncementChain, AnnouncementRequest
from .config import ConfigStore
from .errors import EzanError
from .prayer_times import PrayerSchedule, compute_prayer_times

# Job ids. Daily adhan jobs are "adhan:<index>:<name>"; the index keeps
# registration order for jobs with equal trigger times.
DAILY_GROUP = "adhan"
REBUILD_JOB_ID = "daily_rebuild"
CONFIG_CHECK_JOB_ID = "config_check"
TEST_JOB_ID = "adhan_test"

# Wall-clock time of the daily rebuild
REBUILD_HOUR = 0
REBUILD_MINUTE = 0

CONFIG_CHECK_SECONDS = 10


def create_scheduler() -> BackgroundScheduler:
    """
    Scheduler with a single worker for playback and rebuilds.

    Announcements therefore never overlap on the shared output device.
    The config file watch gets its own worker so playback cannot starve it.
    """
    return BackgroundScheduler(
        executors={
            "default": ThreadPoolExecutor(1),
            "housekeeping": ThreadPoolExecutor(1),
        },
        job_defaults={"coalesce": True, "max_instances": 1},
    )


def _job_id(index: int, name: str) -> str:
    return f"{DAILY_GROUP}:{index}:{name}"


class DailyScheduleManager:
    """Owns the daily group of adhan jobs and replaces it on every rebuild."""

    def __init__(
        self,
        scheduler: BackgroundScheduler,
        store: ConfigStore,
        announcer: AnnouncementChain,
        compute: Callable[..., PrayerSchedule] = compute_prayer_times,
    ):
        self.scheduler = scheduler
        self._store = store
        self._announcer = announcer
        self._compute = compute
        self._lock = threading.Lock()
        self._generation = 0

    def rebuild(self, now: Optional[datetime] = None) -> Optional[PrayerSchedule]:
        """
        Compute today's prayer times and replace the daily job group.

        Only times after `now` are armed, so a rebuild never replays an
        announcement that already fired. The full schedule is returned.
        On failure the error is logged, the current jobs stay armed and None
        is returned.
        """
        now = now or datetime.now()
        cutoff = now if now.tzinfo is not None else now.astimezone()
        config = self._store.current

        try:
            schedule = self._compute(
                config.coordinates,
                now.date(),
                config.calculation_method,
                config.madhab,
                angle_overrides=config.angle_overrides,
            )
        except EzanError as e:
            print(f"[Scheduler] Error calculating prayer times: {e}")
            return None

        print(f"[Scheduler] Prayer times for {schedule.date.isoformat()}:")
        for name, when in schedule:
            passed = " (passed)" if when <= cutoff else ""
            print(f"[Scheduler]   {name:<8} {when.strftime('%H:%M:%S')}{passed}")

        with self._lock:
            self._generation += 1
            self._remove_group()
            for index, (name, when) in enumerate(schedule):
                if when <= cutoff:
                    continue
                # No misfire limit: a job queued behind a long playback still plays
                self.scheduler.add_job(
                    self._fire,
                    trigger=DateTrigger(run_date=when),
                    args=[name, self._generation],
                    id=_job_id(index, name),
                    name=f"{name} adhan",
                    misfire_grace_time=None,
                    replace_existing=True,
                )

        return schedule

    def force_rebuild(self, config=None) -> Optional[PrayerSchedule]:
        """Rebuild immediately, e.g. after a settings change."""
        print("[Scheduler] Settings changed, rescheduling adhan jobs...")
        return self.rebuild()

    def armed_jobs(self) -> list[tuple[str, datetime]]:
        """(name, trigger time) of every armed daily job, earliest first."""
        jobs = [
            (job.args[0], job.trigger.run_date)
            for job in self.scheduler.get_jobs()
            if job.id.startswith(f"{DAILY_GROUP}:")
        ]
        return sorted(jobs, key=lambda item: item[1])

    def schedule_test(self, delay_seconds: float = 3) -> datetime:
        """Arm a one-off test announcement outside the daily group."""
        when = datetime.now() + timedelta(seconds=delay_seconds)
        self.scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=when),
            args=[TEST, None],
            id=TEST_JOB_ID,
            name="test announcement",
            misfire_grace_time=None,
            replace_existing=True,
        )
        print(f"[Scheduler] Test announcement at {when.strftime('%H:%M:%S')}")
        return when

    def start(self):
        """Arm today's jobs, then start the scheduler loop."""
        if self.scheduler.running:
            return

        self.rebuild()

        self.scheduler.add_job(
            self.rebuild,
            CronTrigger(hour=REBUILD_HOUR, minute=REBUILD_MINUTE),
            id=REBUILD_JOB_ID,
            misfire_grace_time=None,
            replace_existing=True,
        )
        print(f"[Scheduler] Daily rebuild at {REBUILD_HOUR:02d}:{REBUILD_MINUTE:02d}")

        self.scheduler.add_job(
            self._store.reload_if_changed,
            "interval",
            seconds=CONFIG_CHECK_SECONDS,
            id=CONFIG_CHECK_JOB_ID,
            executor="housekeeping",
            replace_existing=True,
        )

        self.scheduler.start()
        print("[Scheduler] Scheduler started (config auto-reload enabled)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            print("[Scheduler] Scheduler stopped")

    def _remove_group(self):
        for job in self.scheduler.get_jobs():
            if job.id.startswith(f"{DAILY_GROUP}:"):
                try:
                    self.scheduler.remove_job(job.id)
                except JobLookupError:
                    pass  # fired and removed meanwhile

    def _fire(self, name: str, generation: Optional[int]):
        if generation is not None and generation != self._generation:
            print(f"[Scheduler] Skipping {name}: superseded by a newer schedule")
            return
        self._announcer.announce(AnnouncementRequest(name=name, fired_at=datetime.now()))
