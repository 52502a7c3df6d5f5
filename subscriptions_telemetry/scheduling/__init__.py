"""Recurring job registration."""

from .base import Scheduler
from .celery_beat import CeleryBeatScheduler, DelayedSchedule

__all__ = [
    "Scheduler",
    "CeleryBeatScheduler",
    "DelayedSchedule",
]
