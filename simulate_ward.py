"""
Ward simulation walking through the full deterioration monitoring pipeline.

This script exercises:
1. Configuration loading and validation
2. Scoring a round of observations across a branch
3. Deterioration detection between consecutive observations
4. Overdue observation scanning and escalation
5. The alert workflow (acknowledge, resolve) and error handling

Run with: uv run python simulate_ward.py
"""

import asyncio
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.memory import InMemoryMonitoringRepository
from news2.config import get_config, print_config_summary, validate_config
from news2.domain.models import MonitoringFrequency, RiskLevel
from news2.services.events import AlertEvent
from news2.services.monitoring import MonitoringService

console = Console()

BRANCH_ID = "branch-north"

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.LOW_MEDIUM: "yellow",
    RiskLevel.MEDIUM: "dark_orange",
    RiskLevel.HIGH: "red",
}

# (client, monitoring frequency, vitals)
WARD_ROUND = [
    (
        "mrs-patel",
        MonitoringFrequency.DAILY,
        {
            "respiratory_rate": 16,
            "oxygen_saturation": 97,
            "supplemental_oxygen": False,
            "systolic_bp": 128,
            "pulse_rate": 72,
            "consciousness_level": "A",
            "temperature": 36.8,
        },
    ),
    (
        "mr-okafor",
        MonitoringFrequency.HOURLY,
        {
            "respiratory_rate": 9,
            "oxygen_saturation": 93,
            "supplemental_oxygen": False,
            "systolic_bp": 95,
            "pulse_rate": 45,
            "consciousness_level": "A",
            "temperature": 36.5,
        },
    ),
    (
        "mrs-jones",
        MonitoringFrequency.FOUR_HOURLY,
        {
            "respiratory_rate": 18,
            "oxygen_saturation": 96,
            "supplemental_oxygen": False,
            "systolic_bp": 118,
            "pulse_rate": 80,
            "consciousness_level": "Voice",
            "temperature": 37.1,
        },
    ),
    (
        "mr-singh",
        MonitoringFrequency.HOURLY,
        {
            "respiratory_rate": 26,
            "oxygen_saturation": 90,
            "supplemental_oxygen": True,
            "systolic_bp": 98,
            "pulse_rate": 118,
            "consciousness_level": "A",
            "temperature": 38.9,
        },
    ),
]


def print_event(event: AlertEvent) -> None:
    alert = event.alert
    console.print(
        f"  🔔 {event.event_type.value}: {alert.kind.value} "
        f"({alert.severity.value.upper()}) {alert.message}",
        style="magenta",
    )


async def demo_configuration() -> bool:
    console.print(Panel("🔧 Configuration", style="blue"))
    try:
        validate_config()
        print_config_summary()
        return True
    except Exception as e:
        console.print(f"❌ Configuration failed: {e}", style="red")
        return False


async def demo_ward_round(service: MonitoringService, start: datetime) -> bool:
    console.print(Panel("🩺 Ward Round Scoring", style="blue"))

    table = Table(title=f"Observations for {BRANCH_ID}")
    table.add_column("Client", style="cyan")
    table.add_column("Components (RR, SpO2, O2, SBP, HR, ACVPU, T)")
    table.add_column("Total", justify="right")
    table.add_column("Risk")
    table.add_column("Next check")

    for client_id, frequency, vitals in WARD_ROUND:
        patient = await service.enroll_patient(client_id, BRANCH_ID, frequency, now=start)
        result = await service.submit_observation(
            patient.id, vitals, recorded_by="carer-amy", recorded_at=start
        )
        if result.is_err():
            console.print(f"❌ {client_id}: {result.unwrap_err()}", style="red")
            return False

        scored = result.unwrap()
        observation = scored.observation
        table.add_row(
            client_id,
            ", ".join(str(s) for s in observation.scores.as_tuple()),
            str(observation.total_score),
            f"[{RISK_STYLES[observation.risk_level]}]{observation.risk_level.value}[/]",
            scored.recommended_frequency.value,
        )

    console.print(table)
    return True


async def demo_deterioration(service: MonitoringService, start: datetime) -> bool:
    console.print(Panel("📉 Deterioration Detection", style="blue"))

    summaries = await service.list_patients(BRANCH_ID)
    summary = next(s for s in summaries if s.patient.client_id == "mrs-patel")
    if summary.latest_observation is None:
        console.print("❌ No baseline observation to compare against", style="red")
        return False

    worse = {
        **summary.latest_observation.vitals.model_dump(),
        "respiratory_rate": 22,
        "pulse_rate": 105,
        "consciousness_level": "V",
    }
    result = await service.submit_observation(
        summary.patient.id,
        worse,
        recorded_by="carer-amy",
        notes="More confused than this morning",
        recorded_at=start + timedelta(hours=2),
    )
    scored = result.unwrap()

    console.print(f"Trend: {scored.trend.summary}")
    console.print(f"Response: {scored.clinical_response}", style="yellow")
    return scored.trend.deteriorating


async def demo_overdue_scan(service: MonitoringService, start: datetime) -> bool:
    console.print(Panel("⏰ Overdue Observation Scan", style="blue"))

    for hours in (1.5, 3):
        now = start + timedelta(hours=hours)
        report = await service.scanner.scan_once(now=now)
        console.print(
            f"Scan at +{hours}h: {report.patients_checked} checked, "
            f"{report.overdue_patients} overdue, {report.alerts_changed} alerts changed, "
            f"{report.failures} failures"
        )
    return True


async def demo_alert_workflow(service: MonitoringService) -> bool:
    console.print(Panel("🚨 Alert Workflow", style="blue"))

    open_alerts = await service.list_open_alerts(BRANCH_ID)
    table = Table(title="Open alerts")
    table.add_column("Kind", style="cyan")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Message", style="white")
    for alert in open_alerts:
        table.add_row(alert.kind.value, alert.severity.value, alert.status.value, alert.message)
    console.print(table)

    if not open_alerts:
        console.print("❌ Expected open alerts after the ward round", style="red")
        return False

    first = open_alerts[0]
    (await service.acknowledge_alert(first.id, "nurse-lee")).unwrap()
    (await service.resolve_alert(first.id)).unwrap()

    late_ack = await service.acknowledge_alert(first.id, "nurse-kim")
    console.print(f"Acknowledging a resolved alert: {late_ack.unwrap_err()}", style="yellow")

    bad = await service.submit_observation(
        open_alerts[-1].patient_id,
        {**WARD_ROUND[0][2], "oxygen_saturation": 140},
        recorded_by="carer-amy",
    )
    console.print(f"Implausible SpO2 rejected: {bad.unwrap_err()}", style="yellow")
    return True


async def run_simulation() -> None:
    console.print(Panel("🏥 NEWS2 Deterioration Monitor - Ward Simulation", style="bold blue"))

    config = get_config()
    service = MonitoringService(InMemoryMonitoringRepository(config.database.pool_size), config)
    service.event_bus.subscribe(print_event)
    start = datetime.now(UTC).replace(microsecond=0) - timedelta(hours=3)

    steps = [
        ("Configuration", lambda: demo_configuration()),
        ("Ward Round", lambda: demo_ward_round(service, start)),
        ("Deterioration", lambda: demo_deterioration(service, start)),
        ("Overdue Scan", lambda: demo_overdue_scan(service, start)),
        ("Alert Workflow", lambda: demo_alert_workflow(service)),
    ]

    results = []
    for step_name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((step_name, await step()))
        except Exception as e:
            console.print(f"❌ {step_name} failed with exception: {e}", style="red")
            results.append((step_name, False))

    console.print(f"\n{'=' * 60}")
    summary_table = Table(title="📋 Simulation Summary")
    summary_table.add_column("Step", style="cyan")
    summary_table.add_column("Result", style="white")
    for step_name, ok in results:
        summary_table.add_row(step_name, "✅ OK" if ok else "❌ FAILED")
    console.print(summary_table)


if __name__ == "__main__":
    try:
        asyncio.run(run_simulation())
    except KeyboardInterrupt:
        console.print("\n👋 Simulation stopped by user", style="yellow")
