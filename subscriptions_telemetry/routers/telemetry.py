"""
Telemetry router.

Wired to:
- TelemetryCollector for cache-first reads and forced collections
"""

from fastapi import APIRouter, Depends, HTTPException

from subscriptions_telemetry.engine.collector import TelemetryCollector, get_collector
from subscriptions_telemetry.errors import StorageError
from subscriptions_telemetry.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
def read_telemetry(collector: TelemetryCollector = Depends(get_collector)):
    """
    Get the current telemetry snapshot.
    Served from cache when fresh; the payload's telemetry_cache says which.
    """
    try:
        snapshot = collector.get()
    except StorageError as e:
        logger.error("telemetry_read_failed", error=str(e))
        raise HTTPException(status_code=503, detail="Telemetry storage unavailable")

    return snapshot.to_payload()


@router.post("/collect")
def collect_telemetry(collector: TelemetryCollector = Depends(get_collector)):
    """Force a fresh collection and replace the cached snapshot."""
    try:
        snapshot = collector.collect()
    except StorageError as e:
        logger.error("telemetry_collection_failed", error=str(e))
        raise HTTPException(status_code=503, detail="Telemetry storage unavailable")

    return snapshot.to_payload()
