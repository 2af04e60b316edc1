from datetime import datetime
from typing import Optional

from .models import SensorReading


class Deduplicator:
    """
    Rejects samples that are not strictly newer than the last accepted one.

    Purely time-based: two distinct readings sharing a timestamp count as duplicates.
    One instance per device; never shared across pipelines.
    """

    def __init__(self, last_timestamp: Optional[datetime] = None):
        self.last_timestamp = last_timestamp

    def accept(self, reading: SensorReading) -> bool:
        """Return True and advance the watermark when the reading is newer."""
        if self.last_timestamp is not None and reading.timestamp <= self.last_timestamp:
            return False
        self.last_timestamp = reading.timestamp
        return True
