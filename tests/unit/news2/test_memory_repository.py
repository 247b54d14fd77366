"""Tests for the in-memory monitoring store's conditional writes and queries."""

import asyncio
from datetime import timedelta

import pytest

from adapters.memory import InMemoryMonitoringRepository
from news2.domain.errors import AlertConflict, NotFound, RepositoryUnavailable
from news2.domain.models import Alert, AlertKind, MonitoringPatient, RiskLevel, Severity
from tests.factories import BASE_TIME, make_observation


def make_alert(patient_id: str = "patient-1", kind: AlertKind = AlertKind.HIGH_SCORE) -> Alert:
    return Alert(
        patient_id=patient_id,
        kind=kind,
        severity=Severity.HIGH,
        message="NEWS2 score 5 (medium risk)",
    )


class TestAlertWrites:
    async def test_second_open_alert_of_same_kind_conflicts(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        await repository.insert_alert(make_alert())

        with pytest.raises(AlertConflict):
            await repository.insert_alert(make_alert())

    async def test_different_kinds_coexist(self, repository: InMemoryMonitoringRepository) -> None:
        await repository.insert_alert(make_alert(kind=AlertKind.HIGH_SCORE))
        await repository.insert_alert(make_alert(kind=AlertKind.DETERIORATING))

        assert len(await repository.list_alerts("patient-1")) == 2

    async def test_concurrent_inserts_leave_one_open_alert(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        results = await asyncio.gather(
            *(repository.insert_alert(make_alert()) for _ in range(5)),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, AlertConflict)) == 4
        assert await repository.find_open_alert("patient-1", AlertKind.HIGH_SCORE) is not None

    async def test_resolved_alert_frees_the_slot(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        first = make_alert()
        await repository.insert_alert(first)
        await repository.update_alert(
            first.model_copy(update={"resolved": True, "version": 1}), expected_version=0
        )

        await repository.insert_alert(make_alert())

        assert len(await repository.list_alerts("patient-1")) == 2

    async def test_stale_version_conflicts(self, repository: InMemoryMonitoringRepository) -> None:
        alert = make_alert()
        await repository.insert_alert(alert)
        await repository.update_alert(
            alert.model_copy(update={"severity": Severity.CRITICAL, "version": 1}),
            expected_version=0,
        )

        with pytest.raises(AlertConflict):
            await repository.update_alert(
                alert.model_copy(update={"acknowledged": True, "version": 1}),
                expected_version=0,
            )

        stored = await repository.get_alert(alert.id)
        assert stored is not None and stored.severity == Severity.CRITICAL

    async def test_updating_unknown_alert(self, repository: InMemoryMonitoringRepository) -> None:
        with pytest.raises(NotFound):
            await repository.update_alert(make_alert(), expected_version=0)


class TestQueries:
    async def test_latest_observation_before_timestamp(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        first = make_observation(recorded_at=BASE_TIME)
        second = make_observation(recorded_at=BASE_TIME + timedelta(hours=1))
        await repository.add_observation(second)
        await repository.add_observation(first)

        assert await repository.latest_observation("patient-1") == second
        assert (
            await repository.latest_observation("patient-1", before=second.recorded_at) == first
        )
        assert await repository.latest_observation("patient-1", before=BASE_TIME) is None
        assert await repository.count_observations("patient-1") == 2

    async def test_patients_filtered_by_branch_and_activity(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        active = MonitoringPatient(client_id="c-1", branch_id="branch-1")
        inactive = MonitoringPatient(client_id="c-2", branch_id="branch-1", is_active=False)
        elsewhere = MonitoringPatient(client_id="c-3", branch_id="branch-2")
        for patient in (active, inactive, elsewhere):
            await repository.add_patient(patient)

        assert await repository.list_patients("branch-1") == [active]
        assert len(await repository.list_patients("branch-1", active_only=False)) == 2
        assert len(await repository.list_patients()) == 2

    async def test_updating_unknown_patient(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        with pytest.raises(NotFound):
            await repository.update_patient("nobody", is_active=False)


class TestPatientWrites:
    async def test_active_enrolment_is_inserted_once(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        first = MonitoringPatient(client_id="c-1", branch_id="branch-1")
        second = MonitoringPatient(client_id="c-1", branch_id="branch-1")

        stored = await asyncio.gather(repository.add_patient(first), repository.add_patient(second))

        assert stored[0].id == stored[1].id
        assert len(await repository.list_patients("branch-1")) == 1

    async def test_inactive_enrolment_does_not_block_a_new_one(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        old = MonitoringPatient(client_id="c-1", branch_id="branch-1", is_active=False)
        await repository.add_patient(old)

        new = await repository.add_patient(MonitoringPatient(client_id="c-1", branch_id="branch-1"))

        assert new.id != old.id

    async def test_update_changes_only_named_fields(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        patient = await repository.add_patient(
            MonitoringPatient(client_id="c-1", branch_id="branch-1")
        )
        await repository.update_patient(patient.id, is_active=False)

        await repository.record_observation_risk(
            patient.id, RiskLevel.HIGH, observed_at=BASE_TIME, now=BASE_TIME
        )

        stored = await repository.get_patient(patient.id)
        assert stored is not None
        assert stored.is_active is False
        assert stored.risk_category == RiskLevel.HIGH

    async def test_older_observation_does_not_replace_cached_risk(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        patient = await repository.add_patient(
            MonitoringPatient(client_id="c-1", branch_id="branch-1")
        )
        now = BASE_TIME + timedelta(hours=2)
        await repository.record_observation_risk(
            patient.id, RiskLevel.HIGH, observed_at=BASE_TIME, now=now
        )

        updated = await repository.record_observation_risk(
            patient.id, RiskLevel.LOW, observed_at=BASE_TIME - timedelta(hours=1), now=now
        )

        assert updated.risk_category == RiskLevel.HIGH
        assert updated.last_observation_at == BASE_TIME
        assert updated.updated_at == now


class TestPendingObservations:
    async def test_new_observations_are_pending_until_marked(
        self, repository: InMemoryMonitoringRepository
    ) -> None:
        later = make_observation(recorded_at=BASE_TIME + timedelta(hours=1))
        earlier = make_observation(recorded_at=BASE_TIME)
        await repository.add_observation(later)
        await repository.add_observation(earlier)

        assert await repository.list_pending_observations("patient-1") == [earlier, later]

        await repository.mark_observation_alerted(earlier.id)

        assert await repository.list_pending_observations("patient-1") == [later]
        assert await repository.count_observations("patient-1") == 2


async def test_outage_fails_every_operation(repository: InMemoryMonitoringRepository) -> None:
    repository.available = False

    with pytest.raises(RepositoryUnavailable):
        await repository.get_patient("patient-1")
    with pytest.raises(RepositoryUnavailable):
        await repository.insert_alert(make_alert())
    with pytest.raises(RepositoryUnavailable):
        await repository.add_observation(make_observation())
