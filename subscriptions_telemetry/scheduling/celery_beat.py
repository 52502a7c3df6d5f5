"""
Celery beat scheduler.

Jobs are entries in the app's beat_schedule, keyed by hook name, so beat
holds at most one entry per unique hook. Celery's interval schedules have
no notion of a first-run delay; DelayedSchedule adds one.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

import structlog
from celery import Celery
from celery.schedules import schedstate, schedule

from subscriptions_telemetry.errors import SchedulerError
from subscriptions_telemetry.utils.time_window import to_utc

from .base import Scheduler

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DelayedSchedule(schedule):
    """
    Interval schedule that stays idle until `start_at`.

    The first run happens as soon as beat checks after `start_at`; later
    runs follow the regular interval.
    """

    def __init__(self, run_every, start_at: datetime, relative: bool = False, nowfun=None, app=None):
        super().__init__(run_every=run_every, relative=relative, nowfun=nowfun, app=app)
        self.start_at = to_utc(start_at)

    def is_due(self, last_run_at: Optional[datetime]) -> schedstate:
        now = to_utc(self.now())
        if now < self.start_at:
            return schedstate(is_due=False, next=(self.start_at - now).total_seconds())

        if last_run_at is None or to_utc(last_run_at) < self.start_at:
            return schedstate(is_due=True, next=self.seconds)

        return super().is_due(last_run_at)

    def __repr__(self) -> str:
        return f"<delayed {self.human_seconds} from {self.start_at.isoformat()}>"

    def __reduce__(self):
        return self.__class__, (self.run_every, self.start_at, self.relative, self.nowfun)

    def __eq__(self, other):
        if isinstance(other, DelayedSchedule):
            return self.run_every == other.run_every and self.start_at == other.start_at
        return False


class CeleryBeatScheduler(Scheduler):
    """
    Scheduler writing entries into a Celery app's beat_schedule.

    The hook name is used both as the entry key and as the task name, so
    the handler must be registered as a task under that name.

    Attributes:
        app: Celery application
        clock: UTC time source for computing the first run
    """

    def __init__(self, app: Celery, clock: Callable[[], datetime] = utc_now):
        self.app = app
        self.clock = clock

    def register(
        self,
        initial_delay: int,
        interval: int,
        hook: str,
        args: Sequence = (),
        group: str = "",
        unique: bool = True,
    ) -> bool:
        beat_schedule = dict(self.app.conf.beat_schedule or {})

        if unique and hook in beat_schedule:
            logger.debug("recurring_job_already_registered", hook=hook, group=group)
            return False

        key = hook if unique else f"{hook}:{len(beat_schedule)}"
        try:
            beat_schedule[key] = {
                "task": hook,
                "schedule": DelayedSchedule(
                    run_every=timedelta(seconds=interval),
                    start_at=self.clock() + timedelta(seconds=initial_delay),
                    app=self.app,
                ),
                "args": tuple(args),
                "options": {"headers": {"schedule_group": group}},
            }
            self.app.conf.beat_schedule = beat_schedule
        except Exception as e:
            logger.error("recurring_job_registration_failed", hook=hook, error=str(e))
            raise SchedulerError(f"Failed to register recurring job {hook}: {e}") from e

        logger.info(
            "recurring_job_registered",
            hook=hook,
            group=group,
            initial_delay=initial_delay,
            interval=interval,
        )
        return True
