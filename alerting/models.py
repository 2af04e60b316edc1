import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import (
    ALERT_COOLDOWN_SECONDS,
    CUE_DURATION_MS,
    POLL_INTERVAL_SECONDS,
    REQUIRED_CONSECUTIVE_HIGH_RISK,
    RISK_THRESHOLD,
)


# =============================================================================
# ENUMS
# =============================================================================

class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Position on the ordered scale low < moderate < high < critical."""
        return _RISK_ORDER.index(self)

    @property
    def is_high_band(self) -> bool:
        return self in (RiskLevel.HIGH, RiskLevel.CRITICAL)

    def at_least(self, other: "RiskLevel") -> bool:
        return self.rank >= other.rank


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.CRITICAL]


class DataQuality(str, Enum):
    GOOD = "good"
    FALLBACK = "fallback"


class GatePhase(str, Enum):
    IDLE = "idle"
    ESCALATING = "escalating"
    ALERTING = "alerting"


class TickOutcome(str, Enum):
    SKIPPED = "skipped"
    FETCH_FAILED = "fetch_failed"
    DUPLICATE = "duplicate"
    CLASSIFIER_FAILED = "classifier_failed"
    SUPPRESSED = "suppressed"
    DISPATCHED = "dispatched"
    PERMISSION_DENIED = "permission_denied"
    DISPATCH_FAILED = "dispatch_failed"


# =============================================================================
# PIPELINE RECORDS
# =============================================================================

class SensorReading(BaseModel):
    """Normalized point-in-time sensor sample. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    timestamp: datetime
    temperature: float = Field(..., allow_inf_nan=False)
    humidity: float = Field(..., allow_inf_nan=False)
    smoke_level: float = Field(..., allow_inf_nan=False)

    air_quality: float = 50.0
    wind_speed: float = 5.0
    wind_direction: float = 0.0
    atmospheric_pressure: float = 1013.25
    uv_index: float = 5.0
    soil_moisture: float = 50.0
    rainfall: float = 0.0

    data_quality: DataQuality = DataQuality.GOOD

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC so ordering stays comparable."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class RiskAssessment(BaseModel):
    """Classifier output for one reading."""

    risk_level: RiskLevel
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("recommendations", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class AlertNotification(BaseModel):
    """Payload handed to the dispatcher once the gate approves."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    device_id: str
    risk_level: RiskLevel
    confidence_score: float
    recommendations: List[str] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_assessment(cls, device_id: str, assessment: RiskAssessment, now: datetime) -> "AlertNotification":
        return cls(
            device_id=device_id,
            risk_level=assessment.risk_level,
            confidence_score=assessment.confidence_score,
            recommendations=list(assessment.recommendations),
            created_at=now,
        )


class NotificationPayload(BaseModel):
    title: str
    body: str
    data: Dict[str, Any]
    priority: str = "default"
    sticky: bool = False


# =============================================================================
# GATE STATE
# =============================================================================

class GateConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_threshold: RiskLevel = RiskLevel(RISK_THRESHOLD)
    cooldown_seconds: float = Field(ALERT_COOLDOWN_SECONDS, ge=0)
    required_consecutive_high_risk: int = Field(REQUIRED_CONSECUTIVE_HIGH_RISK, ge=1)


class AlertGateState(BaseModel):
    """Process-lifetime gate state. Replaced, never mutated in place."""

    model_config = ConfigDict(frozen=True)

    last_notification_time: Optional[datetime] = None
    consecutive_high_risk: int = Field(0, ge=0)
    phase: GatePhase = GatePhase.IDLE
    config: GateConfig = Field(default_factory=GateConfig)


class GateDecision(BaseModel):
    approved: bool
    state: AlertGateState
    reason: str


# =============================================================================
# ENGINE SETTINGS & REPORTS
# =============================================================================

class EngineSettings(BaseModel):
    """Runtime-adjustable configuration of one engine."""

    poll_interval_seconds: float = Field(POLL_INTERVAL_SECONDS, gt=0)
    cue_duration_ms: int = Field(CUE_DURATION_MS, gt=0)
    risk_threshold: RiskLevel = RiskLevel(RISK_THRESHOLD)
    cooldown_seconds: float = Field(ALERT_COOLDOWN_SECONDS, ge=0)
    required_consecutive_high_risk: int = Field(REQUIRED_CONSECUTIVE_HIGH_RISK, ge=1)

    def gate_config(self) -> GateConfig:
        return GateConfig(
            risk_threshold=self.risk_threshold,
            cooldown_seconds=self.cooldown_seconds,
            required_consecutive_high_risk=self.required_consecutive_high_risk,
        )


class SettingsUpdate(BaseModel):
    """Partial settings change sent by the host. Unset fields are left alone."""

    model_config = ConfigDict(extra="forbid")

    poll_interval_seconds: Optional[float] = Field(None, gt=0)
    cue_duration_ms: Optional[int] = Field(None, gt=0)
    risk_threshold: Optional[RiskLevel] = None
    cooldown_seconds: Optional[float] = Field(None, ge=0)
    required_consecutive_high_risk: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "SettingsUpdate":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class TickReport(BaseModel):
    outcome: TickOutcome
    at: datetime
    reading: Optional[SensorReading] = None
    assessment: Optional[RiskAssessment] = None
    reason: Optional[str] = None
    notification_id: Optional[str] = None
    error: Optional[str] = None


class EngineStatus(BaseModel):
    device_id: str
    running: bool
    settings: EngineSettings
    gate: AlertGateState
    last_accepted_timestamp: Optional[datetime] = None
    cue_playing: bool
    last_tick: Optional[TickReport] = None
