"""
Periodic detection of patients whose observations are overdue.

Key patterns:
- Structured concurrency with asyncio.TaskGroup, one task per patient
- Worker pool bounded by a semaphore sized to the store's connection capacity
- Error boundary per patient: one failing evaluation never aborts the scan

Each evaluation first settles observations whose alerting was interrupted,
so a failed submission still raises its alerts on the next scan.

The scanner holds no alert state of its own. Running it twice in a row is safe
because the alert engine keeps one open overdue alert per patient.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from pydantic import BaseModel, Field

from news2.config import ScannerConfig
from news2.domain.models import MonitoringPatient, Observation
from news2.domain.result import Result
from news2.services.alert_engine import AlertEngine
from news2.services.events import AlertEvent
from news2.services.repository import MonitoringRepository

logger = structlog.get_logger(__name__)


def next_due(patient: MonitoringPatient, last_observation: Observation | None) -> datetime:
    """When the next observation is due: last observation (or enrolment) plus the interval."""
    baseline = last_observation.recorded_at if last_observation else patient.enrolled_at
    return baseline + patient.monitoring_frequency.interval


@dataclass(frozen=True)
class PatientCheck:
    patient_id: str
    overdue: bool
    elapsed: timedelta
    event: AlertEvent | None = None
    settled_events: int = 0


class ScanReport(BaseModel):
    """Outcome of one scan tick."""

    started_at: datetime
    patients_checked: int = Field(default=0, ge=0)
    overdue_patients: int = Field(default=0, ge=0)
    alerts_changed: int = Field(default=0, ge=0)
    settled_events: int = Field(default=0, ge=0)
    failures: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0.0)


class OverdueScanner:
    """Finds overdue patients and feeds them to the alert engine's overdue path."""

    def __init__(
        self,
        repository: MonitoringRepository,
        alert_engine: AlertEngine,
        config: ScannerConfig | None = None,
    ) -> None:
        self.repository = repository
        self.alert_engine = alert_engine
        self.config = config or ScannerConfig()
        self.concurrency = min(
            self.config.max_concurrent_evaluations, repository.connection_capacity
        )
        self.logger = logger.bind(component="overdue_scanner")
        self._is_running = False

    async def evaluate_patient(
        self, patient: MonitoringPatient, now: datetime
    ) -> Result[PatientCheck, Exception]:
        try:
            settled = await self.alert_engine.settle_pending(patient.id)

            last = await self.repository.latest_observation(patient.id)
            baseline = last.recorded_at if last else patient.enrolled_at
            elapsed = now - baseline

            if now <= next_due(patient, last):
                return Result.ok(
                    PatientCheck(
                        patient.id, overdue=False, elapsed=elapsed, settled_events=len(settled)
                    )
                )

            event = await self.alert_engine.process_overdue(patient, elapsed, now)
            return Result.ok(
                PatientCheck(
                    patient.id,
                    overdue=True,
                    elapsed=elapsed,
                    event=event,
                    settled_events=len(settled),
                )
            )

        except Exception as e:
            self.logger.exception("patient_evaluation_failed", patient_id=patient.id, error=str(e))
            return Result.err(e)

    async def scan_once(self, now: datetime | None = None) -> ScanReport:
        """Evaluate every active patient once."""
        now = now or datetime.now(UTC)
        start_time = time.perf_counter()
        semaphore = asyncio.Semaphore(self.concurrency)

        patients = await self.repository.list_patients(active_only=True)

        async def bounded(patient: MonitoringPatient) -> Result[PatientCheck, Exception]:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        self.evaluate_patient(patient, now),
                        timeout=self.config.evaluation_timeout_seconds,
                    )
                except TimeoutError as e:
                    self.logger.warning("patient_evaluation_timeout", patient_id=patient.id)
                    return Result.err(e)

        async with asyncio.TaskGroup() as task_group:
            tasks = [task_group.create_task(bounded(patient)) for patient in patients]

        report = ScanReport(started_at=now, patients_checked=len(patients))
        for task in tasks:
            result = task.result()
            if result.is_err():
                report.failures += 1
                continue
            check = result.unwrap()
            if check.overdue:
                report.overdue_patients += 1
            if check.event:
                report.alerts_changed += 1
            report.settled_events += check.settled_events

        report.duration_seconds = round(time.perf_counter() - start_time, 3)
        self.logger.info("overdue_scan_completed", **report.model_dump(exclude={"started_at"}))
        return report

    async def run_continuously(self) -> AsyncIterator[ScanReport]:
        """
        Scan on a fixed tick until stopped.

        A failed tick (for example the patient list could not be loaded) is
        logged and the next tick runs after a backoff of twice the interval,
        capped at a minute.
        """
        self.logger.info(
            "overdue_scanner_started", interval_seconds=self.config.scan_interval_seconds
        )
        self._is_running = True

        try:
            while self._is_running:
                tick_start = time.perf_counter()

                try:
                    report = await self.scan_once()
                except Exception as e:
                    self.logger.exception("overdue_scan_failed", error=str(e))
                    # Back off on errors
                    await asyncio.sleep(min(60.0, self.config.scan_interval_seconds * 2))
                    continue

                yield report

                elapsed = time.perf_counter() - tick_start
                sleep_time = max(0.0, self.config.scan_interval_seconds - elapsed)
                if sleep_time == 0:
                    self.logger.warning(
                        "overdue_scan_slower_than_interval",
                        elapsed_seconds=round(elapsed, 3),
                        interval_seconds=self.config.scan_interval_seconds,
                    )
                # always yields to the event loop, even when the scan overran
                await asyncio.sleep(sleep_time)
        finally:
            self._is_running = False
            self.logger.info("overdue_scanner_stopped")

    async def stop(self) -> None:
        self._is_running = False
