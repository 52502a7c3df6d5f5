"""
Celery worker and beat wiring for scheduled telemetry collection.

Run a worker and beat against the same broker:

    celery -A subscriptions_telemetry.worker worker --loglevel=info
    celery -A subscriptions_telemetry.worker beat --loglevel=info
"""

from typing import Any, Dict

from celery import Celery

from subscriptions_telemetry.config import Settings, get_settings
from subscriptions_telemetry.engine.collector import (
    COLLECT_HOOK,
    collect_telemetry_data,
    get_collector,
)
from subscriptions_telemetry.scheduling import CeleryBeatScheduler
from subscriptions_telemetry.utils.logging import configure_logging, get_logger

configure_logging("worker")
logger = get_logger(__name__)


def create_celery(settings: Settings) -> Celery:
    """
    Factory to create a configured Celery instance.

    No side effects beyond app construction; the telemetry job is added to
    beat_schedule once the app is configured.
    """
    app = Celery(
        main="subscriptions_telemetry",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        worker_hijack_root_logger=False,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        broker_connection_retry_on_startup=True,
        timezone="UTC",
        beat_schedule={},
    )
    return app


celery_app: Celery = create_celery(get_settings())


@celery_app.task(name=COLLECT_HOOK)
def collect_telemetry() -> Dict[str, Any]:
    """Collect a fresh telemetry snapshot and replace the cached one."""
    payload = collect_telemetry_data()
    logger.info("scheduled_telemetry_collected", generated_at=payload["generated_at"])
    return payload


@celery_app.on_after_configure.connect
def register_telemetry_schedule(sender: Celery, **kwargs) -> None:
    """Register the recurring collection with beat, once."""
    registered = get_collector().setup(CeleryBeatScheduler(sender))
    logger.info("telemetry_schedule_checked", newly_registered=registered)
