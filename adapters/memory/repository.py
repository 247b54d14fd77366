"""
In-memory monitoring store.

Implements the ``MonitoringRepository`` protocol with plain dictionaries behind
a single ``asyncio.Lock``. It enforces the same conditional-write rules a
relational store would enforce with a partial unique index and a version
column, which makes it a faithful stand-in for tests and local simulation.

``available`` can be switched off to simulate a storage outage.
"""

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Any

import structlog

from news2.domain.errors import AlertConflict, NotFound, RepositoryUnavailable
from news2.domain.models import Alert, AlertKind, MonitoringPatient, Observation, RiskLevel

logger = structlog.get_logger(__name__)


class InMemoryMonitoringRepository:
    def __init__(self, connection_capacity: int = 10) -> None:
        self.connection_capacity = connection_capacity
        self.available = True
        self._lock = asyncio.Lock()
        self._patients: dict[str, MonitoringPatient] = {}
        self._observations: dict[str, list[Observation]] = defaultdict(list)
        self._alerts: dict[str, Alert] = {}
        self._pending_observations: set[str] = set()
        self.logger = logger.bind(component="memory_repository")

    def _check_available(self) -> None:
        if not self.available:
            raise RepositoryUnavailable("monitoring store is unavailable")

    # Patients

    async def add_patient(self, patient: MonitoringPatient) -> MonitoringPatient:
        async with self._lock:
            self._check_available()
            if patient.is_active:
                for existing in self._patients.values():
                    if (
                        existing.is_active
                        and existing.client_id == patient.client_id
                        and existing.branch_id == patient.branch_id
                    ):
                        return existing
            self._patients[patient.id] = patient
            return patient

    async def update_patient(self, patient_id: str, **changes: Any) -> MonitoringPatient:
        async with self._lock:
            self._check_available()
            stored = self._patients.get(patient_id)
            if stored is None:
                raise NotFound("patient", patient_id)
            updated = stored.model_copy(update=changes)
            self._patients[patient_id] = updated
            return updated

    async def record_observation_risk(
        self, patient_id: str, risk_category: RiskLevel, observed_at: datetime, now: datetime
    ) -> MonitoringPatient:
        async with self._lock:
            self._check_available()
            stored = self._patients.get(patient_id)
            if stored is None:
                raise NotFound("patient", patient_id)
            changes: dict[str, Any] = {"updated_at": now}
            if stored.last_observation_at is None or observed_at >= stored.last_observation_at:
                changes.update(risk_category=risk_category, last_observation_at=observed_at)
            updated = stored.model_copy(update=changes)
            self._patients[patient_id] = updated
            return updated

    async def get_patient(self, patient_id: str) -> MonitoringPatient | None:
        async with self._lock:
            self._check_available()
            return self._patients.get(patient_id)

    async def list_patients(
        self, branch_id: str | None = None, active_only: bool = True
    ) -> list[MonitoringPatient]:
        async with self._lock:
            self._check_available()
            patients = [
                p
                for p in self._patients.values()
                if (branch_id is None or p.branch_id == branch_id)
                and (p.is_active or not active_only)
            ]
        return sorted(patients, key=lambda p: p.updated_at, reverse=True)

    # Observations (append-only)

    async def add_observation(self, observation: Observation) -> None:
        async with self._lock:
            self._check_available()
            history = self._observations[observation.patient_id]
            history.append(observation)
            history.sort(key=lambda o: o.recorded_at)
            self._pending_observations.add(observation.id)

    async def list_pending_observations(self, patient_id: str) -> list[Observation]:
        async with self._lock:
            self._check_available()
            return [
                o
                for o in self._observations.get(patient_id, [])
                if o.id in self._pending_observations
            ]

    async def mark_observation_alerted(self, observation_id: str) -> None:
        async with self._lock:
            self._check_available()
            self._pending_observations.discard(observation_id)

    async def latest_observation(
        self, patient_id: str, before: datetime | None = None
    ) -> Observation | None:
        async with self._lock:
            self._check_available()
            history = self._observations.get(patient_id, [])
            candidates = [o for o in history if before is None or o.recorded_at < before]
        return candidates[-1] if candidates else None

    async def list_observations(self, patient_id: str) -> list[Observation]:
        async with self._lock:
            self._check_available()
            return list(reversed(self._observations.get(patient_id, [])))

    async def count_observations(self, patient_id: str) -> int:
        async with self._lock:
            self._check_available()
            return len(self._observations.get(patient_id, []))

    # Alerts

    async def get_alert(self, alert_id: str) -> Alert | None:
        async with self._lock:
            self._check_available()
            return self._alerts.get(alert_id)

    async def find_open_alert(self, patient_id: str, kind: AlertKind) -> Alert | None:
        async with self._lock:
            self._check_available()
            return self._find_open(patient_id, kind)

    async def insert_alert(self, alert: Alert) -> None:
        async with self._lock:
            self._check_available()
            if alert.is_open and self._find_open(alert.patient_id, alert.kind) is not None:
                raise AlertConflict(alert.patient_id, alert.kind.value)
            self._alerts[alert.id] = alert

    async def update_alert(self, alert: Alert, expected_version: int) -> None:
        async with self._lock:
            self._check_available()
            stored = self._alerts.get(alert.id)
            if stored is None:
                raise NotFound("alert", alert.id)
            if stored.version != expected_version:
                raise AlertConflict(alert.patient_id, alert.kind.value)
            self._alerts[alert.id] = alert

    async def list_open_alerts(self, branch_id: str) -> list[Alert]:
        async with self._lock:
            self._check_available()
            branch_patients = {p.id for p in self._patients.values() if p.branch_id == branch_id}
            alerts = [
                a for a in self._alerts.values() if a.is_open and a.patient_id in branch_patients
            ]
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)

    async def list_alerts(self, patient_id: str) -> list[Alert]:
        async with self._lock:
            self._check_available()
            alerts = [a for a in self._alerts.values() if a.patient_id == patient_id]
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)

    def _find_open(self, patient_id: str, kind: AlertKind) -> Alert | None:
        for alert in self._alerts.values():
            if alert.patient_id == patient_id and alert.kind == kind and alert.is_open:
                return alert
        return None
