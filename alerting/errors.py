"""Error taxonomy for the alerting pipeline. Every error is contained per tick."""

from typing import Optional


class AlertingError(Exception):
    """Base exception for alerting engine errors."""
    pass


class FetchTimeout(AlertingError):
    """Telemetry provider did not answer in time. Recovered inline with the fallback reading."""
    pass


class FetchFailure(AlertingError):
    """Telemetry could not be retrieved or was unusable. Aborts the tick."""
    pass


class ReadingValidationError(AlertingError):
    """Raw sample could not be normalized into a SensorReading."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MissingPrimaryField(ReadingValidationError):
    """A primary field (temperature, humidity, smoke level) is absent or non-numeric."""

    def __init__(self, field: str):
        super().__init__(f"primary field '{field}' is missing or not a number", field=field)


class ClassifierFailure(AlertingError):
    """Risk classifier call failed. Aborts the tick with gate state untouched."""
    pass


class PermissionDenied(AlertingError):
    """Notification permission is not granted. No notification, no audio cue."""

    def __init__(self, status: str):
        super().__init__(f"notification permission not granted (status: {status})")
        self.status = status


class NotificationFailure(AlertingError):
    """Presentation layer rejected the notification payload."""
    pass
