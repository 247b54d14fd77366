"""
Persistence boundary for patients, observations and alerts.

The surrounding application supplies the implementation. Every method may
raise ``RepositoryUnavailable`` on storage failure.

Alert writes are conditional so the store can enforce "at most one open alert
per (patient, kind)" without the caller holding a lock:

- ``insert_alert`` fails with ``AlertConflict`` if an open alert of the same
  kind already exists for the patient (a unique constraint on
  ``(patient_id, kind) WHERE NOT resolved`` in a relational store).
- ``update_alert`` fails with ``AlertConflict`` unless the stored version still
  equals ``expected_version`` (optimistic concurrency).

Patient writes are field-level so concurrent administration (deactivation, a
new monitoring frequency) and observation bookkeeping never overwrite each
other with a stale record. ``add_patient`` is insert-if-absent on the active
enrolment of a client within a branch.

A stored observation stays pending until its alerts have been settled with
``mark_observation_alerted``. Pending observations are picked up again by the
next submission or overdue scan for the patient.
"""

from datetime import datetime
from typing import Any, Protocol

from news2.domain.models import Alert, AlertKind, MonitoringPatient, Observation, RiskLevel


class MonitoringRepository(Protocol):
    """
    Protocol for the monitoring store.

    Why Protocol over ABC: structural typing, so any adapter (SQL, HTTP client,
    in-memory) fits without inheriting from the core.
    """

    connection_capacity: int

    async def add_patient(self, patient: MonitoringPatient) -> MonitoringPatient:
        """Store a new enrolment, or return the active one of the same client and branch."""
        ...

    async def update_patient(self, patient_id: str, **changes: Any) -> MonitoringPatient:
        """Apply field changes to the stored patient. Raises ``NotFound``."""
        ...

    async def record_observation_risk(
        self, patient_id: str, risk_category: RiskLevel, observed_at: datetime, now: datetime
    ) -> MonitoringPatient:
        """
        Cache the risk tier of an observation unless a later observation already set it.

        Raises ``NotFound``.
        """
        ...

    async def get_patient(self, patient_id: str) -> MonitoringPatient | None: ...

    async def list_patients(
        self, branch_id: str | None = None, active_only: bool = True
    ) -> list[MonitoringPatient]:
        """Patients, most recently updated first."""
        ...

    async def add_observation(self, observation: Observation) -> None:
        """Append an observation, pending until its alerts are settled."""
        ...

    async def list_pending_observations(self, patient_id: str) -> list[Observation]:
        """Stored observations whose alerts were not settled, oldest first."""
        ...

    async def mark_observation_alerted(self, observation_id: str) -> None: ...

    async def latest_observation(
        self, patient_id: str, before: datetime | None = None
    ) -> Observation | None:
        """Most recent observation, optionally strictly before a point in time."""
        ...

    async def list_observations(self, patient_id: str) -> list[Observation]:
        """All observations of a patient, newest first."""
        ...

    async def count_observations(self, patient_id: str) -> int: ...

    async def get_alert(self, alert_id: str) -> Alert | None: ...

    async def find_open_alert(self, patient_id: str, kind: AlertKind) -> Alert | None: ...

    async def insert_alert(self, alert: Alert) -> None: ...

    async def update_alert(self, alert: Alert, expected_version: int) -> None: ...

    async def list_open_alerts(self, branch_id: str) -> list[Alert]:
        """Unresolved alerts for a branch, newest first."""
        ...

    async def list_alerts(self, patient_id: str) -> list[Alert]:
        """Every alert of a patient including resolved ones, newest first."""
        ...
