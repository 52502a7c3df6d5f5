"""
Tests for Celery beat job registration and the delayed interval schedule.
"""

from datetime import datetime, timedelta, timezone

import pytest
from celery import Celery

from subscriptions_telemetry.scheduling import CeleryBeatScheduler, DelayedSchedule

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def celery_app():
    app = Celery("test", set_as_current=False)
    app.conf.beat_schedule = {}
    app.conf.timezone = "UTC"
    return app


@pytest.fixture
def scheduler(celery_app):
    return CeleryBeatScheduler(celery_app, clock=lambda: NOW)


class TestCeleryBeatScheduler:
    def test_registers_entry(self, scheduler, celery_app):
        registered = scheduler.register(
            initial_delay=3600,
            interval=259200,
            hook="collect-telemetry-data",
            group="subscriptions-telemetry",
        )

        assert registered is True

        entry = celery_app.conf.beat_schedule["collect-telemetry-data"]
        assert entry["task"] == "collect-telemetry-data"
        assert entry["args"] == ()
        assert entry["options"] == {"headers": {"schedule_group": "subscriptions-telemetry"}}
        assert entry["schedule"].run_every == timedelta(days=3)
        assert entry["schedule"].start_at == NOW + timedelta(hours=1)

    def test_unique_registration_is_idempotent(self, scheduler, celery_app):
        assert scheduler.register(3600, 259200, "collect-telemetry-data") is True
        first_entry = celery_app.conf.beat_schedule["collect-telemetry-data"]

        assert scheduler.register(60, 120, "collect-telemetry-data") is False

        assert len(celery_app.conf.beat_schedule) == 1
        assert celery_app.conf.beat_schedule["collect-telemetry-data"] is first_entry

    def test_non_unique_registration_adds_entries(self, scheduler, celery_app):
        scheduler.register(60, 120, "collect-telemetry-data")
        assert scheduler.register(60, 120, "collect-telemetry-data", unique=False) is True
        assert len(celery_app.conf.beat_schedule) == 2


class TestDelayedSchedule:
    def _schedule(self, celery_app, now):
        return DelayedSchedule(
            run_every=timedelta(days=3),
            start_at=NOW + timedelta(hours=1),
            nowfun=lambda: now,
            app=celery_app,
        )

    def test_idle_before_start(self, celery_app):
        schedule = self._schedule(celery_app, NOW)

        state = schedule.is_due(None)

        assert state.is_due is False
        assert state.next == pytest.approx(3600)

    def test_first_run_due_after_start(self, celery_app):
        schedule = self._schedule(celery_app, NOW + timedelta(hours=1, seconds=5))

        state = schedule.is_due(None)

        assert state.is_due is True
        assert state.next == pytest.approx(259200)

    def test_run_before_start_does_not_count(self, celery_app):
        schedule = self._schedule(celery_app, NOW + timedelta(hours=2))

        assert schedule.is_due(NOW - timedelta(days=10)).is_due is True

    def test_follows_interval_after_first_run(self, celery_app):
        last_run = NOW + timedelta(hours=1)
        soon = self._schedule(celery_app, last_run + timedelta(days=1))
        later = self._schedule(celery_app, last_run + timedelta(days=3, seconds=1))

        assert soon.is_due(last_run).is_due is False
        assert later.is_due(last_run).is_due is True

    def test_equality(self, celery_app):
        a = self._schedule(celery_app, NOW)
        b = self._schedule(celery_app, NOW + timedelta(days=1))
        assert a == b
