import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .config import (
    FALLBACK_HUMIDITY,
    FALLBACK_SMOKE_LEVEL,
    FALLBACK_TEMPERATURE,
    PRIMARY_FIELDS,
    SECONDARY_DEFAULTS,
    THINGSPEAK_FIELD_MAP,
)
from .errors import MissingPrimaryField, ReadingValidationError
from .models import DataQuality, SensorReading

logger = logging.getLogger(__name__)


class SampleNormalizer:
    """
    Converts raw provider samples into canonical SensorReading records.

    Primary fields drive classification directly and are required; secondary fields
    only refine it and fall back to fixed defaults when absent or unusable.
    """

    @classmethod
    def normalize(cls, raw: Mapping[str, Any], device_id: str) -> SensorReading:
        """Main pipeline: rename fields → parse primaries → default secondaries → build."""

        # 1. Canonical field names
        fields = cls._map_fields(raw)

        # 2. Required primaries
        primaries = {name: cls._require_number(fields, name) for name in PRIMARY_FIELDS}

        # 3. Optional secondaries with defaults
        secondaries = {name: cls._secondary_or_default(fields, name) for name in SECONDARY_DEFAULTS}

        # 4. Timestamp and quality tag
        timestamp = cls._parse_timestamp(fields.get("timestamp"))
        quality = cls._parse_quality(fields.get("data_quality"))

        # 5. Build the immutable record; values are kept as reported, extremes included
        return SensorReading(
            device_id=str(device_id),
            timestamp=timestamp,
            data_quality=quality,
            **primaries,
            **secondaries,
        )

    @classmethod
    def fallback_reading(cls, device_id: str, now: Optional[datetime] = None) -> SensorReading:
        """Safe-looking reading substituted when the provider does not answer in time."""
        return cls.normalize(fallback_raw(now), device_id)

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------
    @staticmethod
    def _map_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
        """Rename provider fields (field1..field10, created_at) to canonical names."""
        fields: Dict[str, Any] = {}
        for key, value in raw.items():
            if key in THINGSPEAK_FIELD_MAP:
                fields[THINGSPEAK_FIELD_MAP[key]] = value
            elif key == "created_at":
                fields["timestamp"] = value
            else:
                fields.setdefault(key, value)
        return fields

    @staticmethod
    def _to_number(value: Any) -> Optional[float]:
        """Parse provider values (often strings) into finite floats; None when unusable."""
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        return number

    @classmethod
    def _require_number(cls, fields: Mapping[str, Any], name: str) -> float:
        number = cls._to_number(fields.get(name))
        if number is None:
            raise MissingPrimaryField(name)
        return number

    @classmethod
    def _secondary_or_default(cls, fields: Mapping[str, Any], name: str) -> float:
        default = SECONDARY_DEFAULTS[name]
        value = fields.get(name)
        number = cls._to_number(value)
        if number is None:
            if value not in (None, ""):
                logger.debug(f"Unusable {name} value {value!r}, using default {default}")
            return default
        return number

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime:
        """Accept datetimes or ISO-8601 strings (trailing Z allowed); naive means UTC."""
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value:
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise ReadingValidationError(
                    f"timestamp must be a valid ISO-8601 string, got {value!r}", field="timestamp"
                )
        else:
            raise ReadingValidationError("timestamp is missing", field="timestamp")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def _parse_quality(value: Any) -> DataQuality:
        if value == DataQuality.FALLBACK or value == DataQuality.FALLBACK.value:
            return DataQuality.FALLBACK
        return DataQuality.GOOD


def fallback_raw(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Raw sample in canonical shape carrying the fallback quality tag."""
    now = now or datetime.now(timezone.utc)
    return {
        "timestamp": now.isoformat(),
        "temperature": FALLBACK_TEMPERATURE,
        "humidity": FALLBACK_HUMIDITY,
        "smoke_level": FALLBACK_SMOKE_LEVEL,
        "data_quality": DataQuality.FALLBACK.value,
    }
