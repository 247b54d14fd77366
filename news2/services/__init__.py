"""
Core services for deterioration monitoring.

This package contains the scoring pipeline, trend analysis, the alert engine,
the overdue scanner and the service facade that ties them together.
"""

from .alert_engine import AlertEngine
from .events import AlertEvent, AlertEventBus, AlertEventType
from .monitoring import MonitoringService, ScoredObservation
from .overdue_scanner import OverdueScanner, ScanReport
from .repository import MonitoringRepository
from .risk import classify_risk
from .scoring import calculate_scores, validate_vitals
from .trends import TrendAssessment, analyze_trend

__all__ = [
    "AlertEngine",
    "AlertEvent",
    "AlertEventBus",
    "AlertEventType",
    "MonitoringRepository",
    "MonitoringService",
    "OverdueScanner",
    "ScanReport",
    "ScoredObservation",
    "TrendAssessment",
    "analyze_trend",
    "calculate_scores",
    "classify_risk",
    "validate_vitals",
]
