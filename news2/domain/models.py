"""
Domain models for clinical deterioration monitoring.

These models represent the core clinical concepts and are persistence-agnostic.
They use Pydantic for validation; everything that is an audit fact is frozen
and changes are expressed as new copies.
"""

import uuid
from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConsciousnessLevel(str, Enum):
    """ACVPU-style consciousness assessment (new confusion is not recorded)."""

    ALERT = "A"
    VOICE = "V"
    PAIN = "P"
    UNRESPONSIVE = "U"


_CONSCIOUSNESS_NAMES = {
    "alert": ConsciousnessLevel.ALERT,
    "voice": ConsciousnessLevel.VOICE,
    "pain": ConsciousnessLevel.PAIN,
    "unresponsive": ConsciousnessLevel.UNRESPONSIVE,
}


class MonitoringFrequency(str, Enum):
    """How often a patient is expected to have a full set of observations."""

    EVERY_15_MINUTES = "every_15_minutes"
    HOURLY = "hourly"
    FOUR_HOURLY = "4_hourly"
    TWELVE_HOURLY = "12_hourly"
    DAILY = "daily"

    @property
    def interval(self) -> timedelta:
        return _FREQUENCY_INTERVALS[self]


_FREQUENCY_INTERVALS: dict[MonitoringFrequency, timedelta] = {
    MonitoringFrequency.EVERY_15_MINUTES: timedelta(minutes=15),
    MonitoringFrequency.HOURLY: timedelta(hours=1),
    MonitoringFrequency.FOUR_HOURLY: timedelta(hours=4),
    MonitoringFrequency.TWELVE_HOURLY: timedelta(hours=12),
    MonitoringFrequency.DAILY: timedelta(days=1),
}


class RiskLevel(str, Enum):
    """Clinical risk tier derived from the total score and the critical flag."""

    LOW = "low"
    LOW_MEDIUM = "low_medium"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    """Alert severity levels, ordered from least to most urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class AlertKind(str, Enum):
    HIGH_SCORE = "high_score"
    DETERIORATING = "deteriorating"
    OVERDUE_OBSERVATION = "overdue_observation"


class AlertStatus(str, Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class RawVitals(BaseModel):
    """
    One complete set of vital signs as entered by a carer.

    Bounds are physiological plausibility limits, not scoring bands: anything
    outside them is almost certainly a data entry error and is rejected before
    scoring.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    respiratory_rate: int = Field(ge=1, le=70, description="Breaths per minute")
    oxygen_saturation: int = Field(ge=50, le=100, description="SpO2 percent")
    supplemental_oxygen: bool = Field(description="Patient is receiving supplemental oxygen")
    systolic_bp: int = Field(ge=40, le=300, description="Systolic blood pressure, mmHg")
    pulse_rate: int = Field(ge=20, le=250, description="Beats per minute")
    consciousness_level: ConsciousnessLevel
    temperature: float = Field(ge=25.0, le=45.0, description="Degrees Celsius")

    @field_validator("consciousness_level", mode="before")
    @classmethod
    def accept_consciousness_names(cls, v):
        """Accept "Alert", "pain" etc. as well as the single-letter codes."""
        if isinstance(v, str) and len(v.strip()) > 1:
            return _CONSCIOUSNESS_NAMES.get(v.strip().lower(), v)
        return v


class ComponentScores(BaseModel):
    """Per-parameter NEWS2 scores (0-3 each)."""

    model_config = ConfigDict(frozen=True)

    respiratory_rate: int = Field(ge=0, le=3)
    oxygen_saturation: int = Field(ge=0, le=3)
    supplemental_oxygen: int = Field(ge=0, le=3)
    systolic_bp: int = Field(ge=0, le=3)
    pulse_rate: int = Field(ge=0, le=3)
    consciousness_level: int = Field(ge=0, le=3)
    temperature: int = Field(ge=0, le=3)

    def as_tuple(self) -> tuple[int, int, int, int, int, int, int]:
        return (
            self.respiratory_rate,
            self.oxygen_saturation,
            self.supplemental_oxygen,
            self.systolic_bp,
            self.pulse_rate,
            self.consciousness_level,
            self.temperature,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return sum(self.as_tuple())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def single_param_critical(self) -> bool:
        return 3 in self.as_tuple()


class MonitoringPatient(BaseModel):
    """A client enrolled in deterioration monitoring."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    client_id: str
    branch_id: str
    assigned_carer_id: str | None = None
    risk_category: RiskLevel = RiskLevel.LOW
    # recorded_at of the observation risk_category was taken from
    last_observation_at: datetime | None = None
    monitoring_frequency: MonitoringFrequency = MonitoringFrequency.DAILY
    is_active: bool = True
    notes: str | None = None
    enrolled_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Observation(BaseModel):
    """
    A recorded set of vital signs with the scores derived from it.

    Observations are append-only facts: scores are computed once at write time
    and a correction is a new observation.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    patient_id: str
    recorded_by: str
    recorded_at: datetime = Field(default_factory=_utcnow)
    vitals: RawVitals
    scores: ComponentScores
    risk_level: RiskLevel
    clinical_notes: str | None = None
    action_taken: str | None = None
    next_review_time: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_score(self) -> int:
        return self.scores.total

    @computed_field  # type: ignore[prop-decorator]
    @property
    def single_param_critical(self) -> bool:
        return self.scores.single_param_critical


class Alert(BaseModel):
    """
    One episode of a triggering condition for a patient.

    ``version`` increases on every stored change and backs the optimistic
    concurrency check on updates.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    patient_id: str
    observation_id: str | None = None
    kind: AlertKind
    severity: Severity
    message: str = Field(min_length=1)
    acknowledged: bool = False
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    resolved: bool = False
    resolved_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=0, ge=0)

    @property
    def is_open(self) -> bool:
        return not self.resolved

    @property
    def status(self) -> AlertStatus:
        if self.resolved:
            return AlertStatus.RESOLVED
        if self.acknowledged:
            return AlertStatus.ACKNOWLEDGED
        return AlertStatus.OPEN


class PatientSummary(BaseModel):
    """A patient with their most recent observation, as shown on a branch overview."""

    patient: MonitoringPatient
    latest_observation: Observation | None = None
    observation_count: int = Field(default=0, ge=0)
