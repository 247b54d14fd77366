"""
Monitoring service: the operations offered to the surrounding application.

Pipeline for a submitted observation:
1. Validate the raw vitals at the boundary (nothing is stored on failure)
2. Settle any earlier observation whose alerting was interrupted
3. Score each parameter and classify the risk tier
4. Store the observation (append-only, pending) and cache the risk category
   when it is the patient's latest reading
5. Compare with the previous observation, open or upgrade alerts, publish
   events and mark the observation settled

Expected failures come back as ``Result.err``. Storage failures raise
``RepositoryUnavailable`` so a submission is never reported as successful
without having been stored and alerted on.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from news2.config import AppConfig, get_config
from news2.domain.errors import InvalidObservation, MonitoringError, NotFound, PatientNotActive
from news2.domain.models import (
    Alert,
    MonitoringFrequency,
    MonitoringPatient,
    Observation,
    PatientSummary,
    RawVitals,
)
from news2.domain.result import Result
from news2.services.alert_engine import AlertEngine
from news2.services.events import AlertEvent, AlertEventBus
from news2.services.overdue_scanner import OverdueScanner
from news2.services.repository import MonitoringRepository
from news2.services.risk import classify_risk, clinical_response, recommended_frequency
from news2.services.scoring import calculate_scores, validate_vitals
from news2.services.trends import TrendAssessment

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ScoredObservation:
    """A stored observation with everything derived from it."""

    observation: Observation
    trend: TrendAssessment
    clinical_response: str
    recommended_frequency: MonitoringFrequency
    alert_events: list[AlertEvent] = field(default_factory=list)

    @property
    def alerts(self) -> list[Alert]:
        return [event.alert for event in self.alert_events]


class MonitoringService:
    """Facade combining scoring, trend analysis, alerting and overdue scanning."""

    def __init__(
        self,
        repository: MonitoringRepository,
        config: AppConfig | None = None,
        event_bus: AlertEventBus | None = None,
    ) -> None:
        self.config = config or get_config()
        self.repository = repository
        self.event_bus = event_bus or AlertEventBus()
        self.logger = logger.bind(component="monitoring_service")

        self.alert_engine = AlertEngine(repository, self.event_bus, self.config.alerting)
        self.scanner = OverdueScanner(
            repository,
            self.alert_engine,
            self.config.scanner.model_copy(
                update={"max_concurrent_evaluations": self.config.scan_concurrency}
            ),
        )

    # Patients

    async def enroll_patient(
        self,
        client_id: str,
        branch_id: str,
        monitoring_frequency: MonitoringFrequency = MonitoringFrequency.DAILY,
        assigned_carer_id: str | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> MonitoringPatient:
        """Start monitoring a client. An existing active enrolment is returned as is."""
        now = now or datetime.now(UTC)
        patient = MonitoringPatient(
            client_id=client_id,
            branch_id=branch_id,
            assigned_carer_id=assigned_carer_id,
            monitoring_frequency=monitoring_frequency,
            notes=notes,
            enrolled_at=now,
            updated_at=now,
        )
        stored = await self.repository.add_patient(patient)
        if stored.id != patient.id:
            self.logger.info("patient_already_enrolled", patient_id=stored.id)
            return stored

        self.logger.info(
            "patient_enrolled",
            patient_id=patient.id,
            branch_id=branch_id,
            monitoring_frequency=monitoring_frequency.value,
        )
        return patient

    async def deactivate_patient(
        self, patient_id: str
    ) -> Result[MonitoringPatient, MonitoringError]:
        """Stop monitoring. History is kept; the patient is never deleted."""
        patient = await self.repository.get_patient(patient_id)
        if patient is None:
            return Result.err(NotFound("patient", patient_id))
        if not patient.is_active:
            return Result.ok(patient)

        updated = await self.repository.update_patient(
            patient_id, is_active=False, updated_at=datetime.now(UTC)
        )
        self.logger.info("patient_deactivated", patient_id=patient_id)
        return Result.ok(updated)

    async def update_monitoring_frequency(
        self, patient_id: str, frequency: MonitoringFrequency
    ) -> Result[MonitoringPatient, MonitoringError]:
        patient = await self.repository.get_patient(patient_id)
        if patient is None or not patient.is_active:
            return Result.err(PatientNotActive(patient_id))

        updated = await self.repository.update_patient(
            patient_id, monitoring_frequency=frequency, updated_at=datetime.now(UTC)
        )
        self.logger.info(
            "monitoring_frequency_updated",
            patient_id=patient_id,
            previous=patient.monitoring_frequency.value,
            frequency=frequency.value,
        )
        return Result.ok(updated)

    async def list_patients(self, branch_id: str) -> list[PatientSummary]:
        """Active patients of a branch with their latest observation, newest activity first."""
        summaries = []
        for patient in await self.repository.list_patients(branch_id=branch_id):
            summaries.append(
                PatientSummary(
                    patient=patient,
                    latest_observation=await self.repository.latest_observation(patient.id),
                    observation_count=await self.repository.count_observations(patient.id),
                )
            )
        return summaries

    # Observations

    async def submit_observation(
        self,
        patient_id: str,
        raw_vitals: Mapping[str, Any] | RawVitals,
        recorded_by: str,
        notes: str | None = None,
        action_taken: str | None = None,
        next_review_time: datetime | None = None,
        recorded_at: datetime | None = None,
    ) -> Result[ScoredObservation, MonitoringError]:
        """
        Score, store and alert on one set of vital signs.

        If an earlier submission was stored but its alerting failed, that
        observation is settled first. Resubmitting the same reading after a
        ``RepositoryUnavailable`` resumes the stored observation instead of
        recording it twice.
        """
        log = self.logger.bind(patient_id=patient_id)

        try:
            vitals = validate_vitals(raw_vitals)
        except InvalidObservation as e:
            log.info("observation_rejected", field=e.field, reason=e.reason)
            return Result.err(e)

        patient = await self.repository.get_patient(patient_id)
        if patient is None or not patient.is_active:
            log.info("observation_rejected_patient_not_active")
            return Result.err(PatientNotActive(patient_id))

        resumed: ScoredObservation | None = None
        for pending in await self.repository.list_pending_observations(patient.id):
            trend, events = await self.alert_engine.settle_observation(pending)
            if resumed is None and _same_submission(
                pending, vitals, recorded_by, notes, action_taken, recorded_at
            ):
                await self._cache_risk(pending)
                resumed = self._scored(pending, trend, events)
        if resumed is not None:
            log.info("observation_resumed", observation_id=resumed.observation.id)
            return Result.ok(resumed)

        recorded_at = recorded_at or datetime.now(UTC)
        scores = calculate_scores(vitals)
        risk_level = classify_risk(scores.total, scores.single_param_critical)

        observation = Observation(
            patient_id=patient.id,
            recorded_by=recorded_by,
            recorded_at=recorded_at,
            vitals=vitals,
            scores=scores,
            risk_level=risk_level,
            clinical_notes=notes,
            action_taken=action_taken,
            next_review_time=(
                next_review_time or recorded_at + patient.monitoring_frequency.interval
            ),
        )

        await self.repository.add_observation(observation)
        await self._cache_risk(observation)
        log.info(
            "observation_stored",
            observation_id=observation.id,
            total_score=observation.total_score,
            risk_level=risk_level.value,
            single_param_critical=observation.single_param_critical,
        )

        trend, events = await self.alert_engine.settle_observation(observation)
        log.info(
            "observation_scored",
            observation_id=observation.id,
            deteriorating=trend.deteriorating,
            alert_events=len(events),
        )
        return Result.ok(self._scored(observation, trend, events))

    async def _cache_risk(self, observation: Observation) -> None:
        await self.repository.record_observation_risk(
            observation.patient_id,
            observation.risk_level,
            observed_at=observation.recorded_at,
            now=datetime.now(UTC),
        )

    def _scored(
        self, observation: Observation, trend: TrendAssessment, events: list[AlertEvent]
    ) -> ScoredObservation:
        return ScoredObservation(
            observation=observation,
            trend=trend,
            clinical_response=clinical_response(observation.risk_level, observation.total_score),
            recommended_frequency=recommended_frequency(
                observation.risk_level, observation.total_score
            ),
            alert_events=events,
        )

    async def list_observations(self, patient_id: str) -> list[Observation]:
        return await self.repository.list_observations(patient_id)

    # Alerts

    async def list_open_alerts(self, branch_id: str) -> list[Alert]:
        return await self.repository.list_open_alerts(branch_id)

    async def list_alert_history(self, patient_id: str) -> list[Alert]:
        return await self.repository.list_alerts(patient_id)

    async def acknowledge_alert(
        self, alert_id: str, actor_id: str
    ) -> Result[Alert, MonitoringError]:
        return await self.alert_engine.acknowledge(alert_id, actor_id)

    async def resolve_alert(self, alert_id: str) -> Result[Alert, MonitoringError]:
        return await self.alert_engine.resolve(alert_id)


def _same_submission(
    stored: Observation,
    vitals: RawVitals,
    recorded_by: str,
    notes: str | None,
    action_taken: str | None,
    recorded_at: datetime | None,
) -> bool:
    """Whether a submission repeats a stored observation (a retry after a failure)."""
    return (
        stored.vitals == vitals
        and stored.recorded_by == recorded_by
        and stored.clinical_notes == notes
        and stored.action_taken == action_taken
        and (recorded_at is None or stored.recorded_at == recorded_at)
    )
