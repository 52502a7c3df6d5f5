"""Exception hierarchy for subscription telemetry."""


class TelemetryError(Exception):
    """Base exception for all telemetry failures."""

    pass


class StorageError(TelemetryError):
    """Base exception for all storage operation failures."""

    pass


class SchedulerError(TelemetryError):
    """Raised when a recurring job cannot be registered."""

    pass
