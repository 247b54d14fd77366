"""
Alert lifecycle management.

Decides, for a scored observation or an overdue signal, which alerts to open or
upgrade, persists the change and publishes the matching events.

Invariants:
- At most one open (unresolved) alert per (patient, kind). A new trigger of the
  same kind updates the open alert instead of adding a second one.
- Severity never goes down through a trigger; only resolution ends an episode.
- Alerts are never cleared because their condition went away. Operators
  acknowledge and resolve them; a resolved alert is never reopened.

Writes go through the repository's conditional insert/update. A lost race
surfaces as ``AlertConflict`` and the whole read-decide-write step is retried
against fresh state.

A stored observation is pending until ``settle_observation`` completes. If
alerting fails part way, ``settle_pending`` runs it again later against the
same baseline; upserts that already landed are no-ops the second time.
"""

from datetime import UTC, datetime, timedelta

import structlog
from pydantic import BaseModel, ConfigDict

from news2.config import AlertingConfig
from news2.domain.errors import (
    AlertConflict,
    AlreadyResolved,
    MonitoringError,
    NotFound,
    RepositoryUnavailable,
)
from news2.domain.models import (
    Alert,
    AlertKind,
    MonitoringPatient,
    Observation,
    RiskLevel,
    Severity,
)
from news2.domain.result import Result
from news2.services.events import AlertEvent, AlertEventBus, AlertEventType
from news2.services.repository import MonitoringRepository
from news2.services.trends import TrendAssessment, analyze_trend

logger = structlog.get_logger(__name__)


class AlertTrigger(BaseModel):
    """A condition that wants an alert of a given kind and severity."""

    model_config = ConfigDict(frozen=True)

    kind: AlertKind
    severity: Severity
    message: str


def format_duration(duration: timedelta) -> str:
    minutes = max(0, int(duration.total_seconds() // 60))
    hours, minutes = divmod(minutes, 60)
    if hours and minutes:
        return f"{hours}h{minutes:02d}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def observation_triggers(observation: Observation, trend: TrendAssessment) -> list[AlertTrigger]:
    """Alert conditions raised by one scored observation. Rules fire independently."""
    triggers: list[AlertTrigger] = []

    if observation.risk_level in (RiskLevel.MEDIUM, RiskLevel.HIGH):
        severity = Severity.CRITICAL if observation.risk_level == RiskLevel.HIGH else Severity.HIGH
        triggers.append(
            AlertTrigger(
                kind=AlertKind.HIGH_SCORE,
                severity=severity,
                message=(
                    f"NEWS2 score {observation.total_score} "
                    f"({observation.risk_level.value} risk)"
                ),
            )
        )

    if trend.deteriorating:
        triggers.append(
            AlertTrigger(
                kind=AlertKind.DETERIORATING,
                severity=Severity.HIGH,
                message=f"Patient deteriorating: {trend.summary}",
            )
        )

    return triggers


def overdue_trigger(
    patient: MonitoringPatient, elapsed: timedelta, escalation_factor: float
) -> AlertTrigger:
    """
    Overdue alert for a patient whose last observation was ``elapsed`` ago.

    Medium severity once the monitoring interval has passed, high once the gap
    exceeds ``escalation_factor`` intervals.
    """
    interval = patient.monitoring_frequency.interval
    severity = Severity.HIGH if elapsed > interval * escalation_factor else Severity.MEDIUM
    return AlertTrigger(
        kind=AlertKind.OVERDUE_OBSERVATION,
        severity=severity,
        message=(
            f"Observation overdue by {format_duration(elapsed - interval)} "
            f"({patient.monitoring_frequency.value} monitoring, "
            f"last {format_duration(elapsed)} ago)"
        ),
    )


class AlertEngine:
    """Single entry point for every alert write, from observations and from the scanner."""

    def __init__(
        self,
        repository: MonitoringRepository,
        event_bus: AlertEventBus,
        config: AlertingConfig | None = None,
    ) -> None:
        self.repository = repository
        self.event_bus = event_bus
        self.config = config or AlertingConfig()
        self.logger = logger.bind(component="alert_engine")

    async def process_observation(
        self, observation: Observation, trend: TrendAssessment
    ) -> list[AlertEvent]:
        """Open or upgrade alerts for a freshly stored observation."""
        now = observation.recorded_at
        events: list[AlertEvent] = []

        # transitions already stored are published even if a later trigger fails
        try:
            for trigger in observation_triggers(observation, trend):
                event = await self._upsert(observation.patient_id, trigger, observation, now)
                if event:
                    events.append(event)

            if self.config.resolve_overdue_on_observation:
                overdue = await self.repository.find_open_alert(
                    observation.patient_id, AlertKind.OVERDUE_OBSERVATION
                )
                if overdue:
                    result = await self._resolve(overdue.id, now, publish=False)
                    if result.is_ok():
                        events.append(
                            AlertEvent(AlertEventType.RESOLVED, result.unwrap(), observation, now)
                        )
        finally:
            await self.event_bus.publish(events)
        return events

    async def settle_observation(
        self, observation: Observation
    ) -> tuple[TrendAssessment, list[AlertEvent]]:
        """
        Run alerting for a stored observation and mark it settled.

        The trend baseline is the observation recorded just before it, so a
        settlement retried later sees the same comparison as the first attempt.
        """
        previous = await self.repository.latest_observation(
            observation.patient_id, before=observation.recorded_at
        )
        trend = analyze_trend(observation, previous, self.config.deterioration_score_delta)
        events = await self.process_observation(observation, trend)
        await self.repository.mark_observation_alerted(observation.id)
        return trend, events

    async def settle_pending(self, patient_id: str) -> list[AlertEvent]:
        """Settle observations whose alerting was interrupted, oldest first."""
        events: list[AlertEvent] = []
        for observation in await self.repository.list_pending_observations(patient_id):
            self.logger.info(
                "pending_observation_settling",
                patient_id=patient_id,
                observation_id=observation.id,
            )
            _, settled = await self.settle_observation(observation)
            events.extend(settled)
        return events

    async def process_overdue(
        self, patient: MonitoringPatient, elapsed: timedelta, now: datetime | None = None
    ) -> AlertEvent | None:
        """Open or escalate the overdue alert of a patient."""
        now = now or datetime.now(UTC)
        trigger = overdue_trigger(patient, elapsed, self.config.overdue_escalation_factor)
        event = await self._upsert(patient.id, trigger, None, now)
        if event:
            await self.event_bus.publish([event])
        return event

    async def acknowledge(
        self, alert_id: str, actor_id: str, now: datetime | None = None
    ) -> Result[Alert, MonitoringError]:
        """
        Mark an alert as seen by an operator.

        Acknowledging twice keeps the first acknowledger. Resolved alerts cannot
        be acknowledged.
        """
        now = now or datetime.now(UTC)

        for attempt in range(1, self.config.conflict_retry_attempts + 1):
            alert = await self.repository.get_alert(alert_id)
            if alert is None:
                return Result.err(NotFound("alert", alert_id))
            if alert.resolved:
                return Result.err(AlreadyResolved(alert_id))
            if alert.acknowledged:
                return Result.ok(alert)

            updated = alert.model_copy(
                update={
                    "acknowledged": True,
                    "acknowledged_by": actor_id,
                    "acknowledged_at": now,
                    "updated_at": now,
                    "version": alert.version + 1,
                }
            )
            try:
                await self.repository.update_alert(updated, expected_version=alert.version)
            except AlertConflict:
                self.logger.warning("alert_conflict_retry", alert_id=alert_id, attempt=attempt)
                continue

            self.logger.info("alert_acknowledged", alert_id=alert_id, actor_id=actor_id)
            await self.event_bus.publish(
                [AlertEvent(AlertEventType.ACKNOWLEDGED, updated, occurred_at=now)]
            )
            return Result.ok(updated)

        raise RepositoryUnavailable(f"could not acknowledge alert {alert_id}: write contention")

    async def resolve(
        self, alert_id: str, now: datetime | None = None
    ) -> Result[Alert, MonitoringError]:
        """Close an alert episode. Resolving a resolved alert returns it unchanged."""
        return await self._resolve(alert_id, now or datetime.now(UTC), publish=True)

    async def _resolve(
        self, alert_id: str, now: datetime, publish: bool
    ) -> Result[Alert, MonitoringError]:
        for attempt in range(1, self.config.conflict_retry_attempts + 1):
            alert = await self.repository.get_alert(alert_id)
            if alert is None:
                return Result.err(NotFound("alert", alert_id))
            if alert.resolved:
                return Result.ok(alert)

            updated = alert.model_copy(
                update={
                    "resolved": True,
                    "resolved_at": now,
                    "updated_at": now,
                    "version": alert.version + 1,
                }
            )
            try:
                await self.repository.update_alert(updated, expected_version=alert.version)
            except AlertConflict:
                self.logger.warning("alert_conflict_retry", alert_id=alert_id, attempt=attempt)
                continue

            self.logger.info("alert_resolved", alert_id=alert_id, kind=alert.kind.value)
            if publish:
                await self.event_bus.publish(
                    [AlertEvent(AlertEventType.RESOLVED, updated, occurred_at=now)]
                )
            return Result.ok(updated)

        raise RepositoryUnavailable(f"could not resolve alert {alert_id}: write contention")

    async def _upsert(
        self,
        patient_id: str,
        trigger: AlertTrigger,
        observation: Observation | None,
        now: datetime,
    ) -> AlertEvent | None:
        """Insert-if-absent, else upgrade, for the open alert slot of (patient, kind)."""
        log = self.logger.bind(patient_id=patient_id, kind=trigger.kind.value)
        observation_id = observation.id if observation else None

        for attempt in range(1, self.config.conflict_retry_attempts + 1):
            existing = await self.repository.find_open_alert(patient_id, trigger.kind)
            try:
                if existing is None:
                    alert = Alert(
                        patient_id=patient_id,
                        observation_id=observation_id,
                        kind=trigger.kind,
                        severity=trigger.severity,
                        message=trigger.message,
                        created_at=now,
                        updated_at=now,
                    )
                    await self.repository.insert_alert(alert)
                    log.info("alert_opened", alert_id=alert.id, severity=alert.severity.value)
                    return AlertEvent(AlertEventType.OPENED, alert, observation, now)

                if trigger.severity.rank < existing.severity.rank:
                    log.info(
                        "alert_upgrade_skipped",
                        alert_id=existing.id,
                        current_severity=existing.severity.value,
                        trigger_severity=trigger.severity.value,
                    )
                    return None

                if (
                    trigger.severity == existing.severity
                    and observation_id == existing.observation_id
                ):
                    if trigger.message == existing.message:
                        log.debug("alert_unchanged", alert_id=existing.id)
                        return None

                    # same episode, newer wording (e.g. a longer overdue gap); no event
                    await self.repository.update_alert(
                        existing.model_copy(
                            update={
                                "message": trigger.message,
                                "updated_at": now,
                                "version": existing.version + 1,
                            }
                        ),
                        expected_version=existing.version,
                    )
                    log.debug("alert_message_refreshed", alert_id=existing.id)
                    return None

                updated = existing.model_copy(
                    update={
                        "severity": trigger.severity,
                        "message": trigger.message,
                        "observation_id": observation_id,
                        "updated_at": now,
                        "version": existing.version + 1,
                    }
                )
                await self.repository.update_alert(updated, expected_version=existing.version)
                log.info(
                    "alert_upgraded",
                    alert_id=updated.id,
                    previous_severity=existing.severity.value,
                    severity=updated.severity.value,
                )
                return AlertEvent(AlertEventType.UPGRADED, updated, observation, now)

            except AlertConflict:
                log.warning("alert_conflict_retry", attempt=attempt)

        raise RepositoryUnavailable(
            f"could not settle open {trigger.kind.value} alert for patient {patient_id} "
            f"after {self.config.conflict_retry_attempts} attempts"
        )
