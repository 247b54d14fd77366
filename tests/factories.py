"""Builders for vitals and observations shared across the test suite."""

from datetime import UTC, datetime
from typing import Any

from news2.domain.models import Observation, RawVitals
from news2.services.risk import classify_risk
from news2.services.scoring import calculate_scores

# Every parameter in its zero-scoring band
NORMAL_VITALS: dict[str, Any] = {
    "respiratory_rate": 16,
    "oxygen_saturation": 98,
    "supplemental_oxygen": False,
    "systolic_bp": 120,
    "pulse_rate": 70,
    "consciousness_level": "A",
    "temperature": 37.0,
}

# RR 25 (3) + SpO2 91 (3) + pulse 111 (2) = 8, high risk
HIGH_RISK_VITALS: dict[str, Any] = {
    **NORMAL_VITALS,
    "respiratory_rate": 25,
    "oxygen_saturation": 91,
    "pulse_rate": 111,
}

# RR 22 (2) + SpO2 93 (2) + pulse 95 (1) = 5, medium risk
MEDIUM_RISK_VITALS: dict[str, Any] = {
    **NORMAL_VITALS,
    "respiratory_rate": 22,
    "oxygen_saturation": 93,
    "pulse_rate": 95,
}

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def make_vitals(**overrides: Any) -> RawVitals:
    return RawVitals.model_validate({**NORMAL_VITALS, **overrides})


def make_observation(
    patient_id: str = "patient-1",
    recorded_at: datetime = BASE_TIME,
    **vital_overrides: Any,
) -> Observation:
    """Build a scored observation the same way the service does."""
    vitals = make_vitals(**vital_overrides)
    scores = calculate_scores(vitals)
    return Observation(
        patient_id=patient_id,
        recorded_by="carer-1",
        recorded_at=recorded_at,
        vitals=vitals,
        scores=scores,
        risk_level=classify_risk(scores.total, scores.single_param_critical),
    )


