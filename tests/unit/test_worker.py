"""
Tests for the Celery task and beat registration wiring.
"""

from unittest.mock import MagicMock

from celery import Celery

from subscriptions_telemetry import worker
from subscriptions_telemetry.engine.collector import COLLECT_HOOK, TelemetryCollector
from subscriptions_telemetry.scheduling import CeleryBeatScheduler


def test_task_registered_under_hook_name():
    assert COLLECT_HOOK in worker.celery_app.tasks


def test_task_collects_fresh_snapshot(monkeypatch):
    monkeypatch.setattr(worker, "collect_telemetry_data", lambda: {"generated_at": 1718452800})

    assert worker.collect_telemetry() == {"generated_at": 1718452800}


def test_after_configure_registers_schedule_once(monkeypatch):
    collector = MagicMock(spec=TelemetryCollector)
    collector.setup.return_value = True
    monkeypatch.setattr(worker, "get_collector", lambda: collector)
    app = Celery("test", set_as_current=False)

    worker.register_telemetry_schedule(sender=app)

    [scheduler] = collector.setup.call_args.args
    assert isinstance(scheduler, CeleryBeatScheduler)
    assert scheduler.app is app


def test_create_celery_uses_settings():
    settings = MagicMock(
        celery_broker_url="memory://",
        celery_result_backend="cache+memory://",
    )

    app = worker.create_celery(settings)

    assert app.conf.broker_url == "memory://"
    assert app.conf.task_serializer == "json"
    assert app.conf.beat_schedule == {}
