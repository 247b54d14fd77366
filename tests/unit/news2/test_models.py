"""Tests for domain models and the Result type."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from news2.domain.errors import NotFound
from news2.domain.models import (
    Alert,
    AlertKind,
    AlertStatus,
    ConsciousnessLevel,
    MonitoringFrequency,
    MonitoringPatient,
    RawVitals,
    Severity,
)
from news2.domain.result import Result
from tests.factories import NORMAL_VITALS, make_observation, make_vitals


class TestResult:
    def test_ok(self) -> None:
        result: Result[int, NotFound] = Result.ok(5)

        assert result.is_ok() and not result.is_err()
        assert result.unwrap() == 5
        assert result.unwrap_or(0) == 5

    def test_err_raises_on_unwrap(self) -> None:
        result: Result[int, NotFound] = Result.err(NotFound("alert", "a-1"))

        assert result.is_err()
        assert result.unwrap_or(0) == 0
        with pytest.raises(NotFound):
            result.unwrap()

    def test_unwrap_err_on_ok_value(self) -> None:
        with pytest.raises(ValueError):
            Result.ok(1).unwrap_err()

    def test_requires_exactly_one_side(self) -> None:
        with pytest.raises(ValueError):
            Result()
        with pytest.raises(ValueError):
            Result(value=1, error=NotFound("alert", "a-1"))


@pytest.mark.parametrize(
    "frequency,interval",
    [
        (MonitoringFrequency.EVERY_15_MINUTES, timedelta(minutes=15)),
        (MonitoringFrequency.HOURLY, timedelta(hours=1)),
        (MonitoringFrequency.FOUR_HOURLY, timedelta(hours=4)),
        (MonitoringFrequency.TWELVE_HOURLY, timedelta(hours=12)),
        (MonitoringFrequency.DAILY, timedelta(days=1)),
    ],
)
def test_frequency_intervals(frequency: MonitoringFrequency, interval: timedelta) -> None:
    assert frequency.interval == interval


def test_severity_ordering() -> None:
    ranks = [s.rank for s in (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4


class TestRawVitals:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("A", ConsciousnessLevel.ALERT),
            ("Alert", ConsciousnessLevel.ALERT),
            ("pain", ConsciousnessLevel.PAIN),
            (" Unresponsive ", ConsciousnessLevel.UNRESPONSIVE),
        ],
    )
    def test_consciousness_accepts_codes_and_names(
        self, value: str, expected: ConsciousnessLevel
    ) -> None:
        assert make_vitals(consciousness_level=value).consciousness_level == expected

    def test_unknown_fields_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_vitals(blood_glucose=5.5)

    def test_missing_field_is_rejected(self) -> None:
        incomplete = {k: v for k, v in NORMAL_VITALS.items() if k != "pulse_rate"}
        with pytest.raises(ValidationError):
            RawVitals.model_validate(incomplete)

    def test_is_frozen(self) -> None:
        vitals = make_vitals()
        with pytest.raises(ValidationError):
            vitals.pulse_rate = 200  # type: ignore[misc]


def test_observation_exposes_total_and_critical_flag() -> None:
    observation = make_observation(consciousness_level="U")

    assert observation.total_score == 3
    assert observation.single_param_critical is True
    assert observation.model_dump()["total_score"] == 3


def test_patient_defaults() -> None:
    patient = MonitoringPatient(client_id="client-1", branch_id="branch-1")

    assert patient.monitoring_frequency == MonitoringFrequency.DAILY
    assert patient.is_active
    assert patient.id


class TestAlertStatus:
    def make_alert(self, **updates) -> Alert:
        alert = Alert(
            patient_id="patient-1",
            kind=AlertKind.OVERDUE_OBSERVATION,
            severity=Severity.MEDIUM,
            message="Observation overdue by 30m",
        )
        return alert.model_copy(update=updates)

    def test_open(self) -> None:
        alert = self.make_alert()
        assert alert.status == AlertStatus.OPEN and alert.is_open

    def test_acknowledged_is_still_open(self) -> None:
        alert = self.make_alert(acknowledged=True, acknowledged_by="nurse-1")
        assert alert.status == AlertStatus.ACKNOWLEDGED and alert.is_open

    def test_resolved(self) -> None:
        alert = self.make_alert(acknowledged=True, resolved=True)
        assert alert.status == AlertStatus.RESOLVED and not alert.is_open

    def test_empty_message_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Alert(
                patient_id="patient-1",
                kind=AlertKind.HIGH_SCORE,
                severity=Severity.HIGH,
                message="",
            )
