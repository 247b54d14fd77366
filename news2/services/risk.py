"""
Risk classification and the clinical response attached to each tier.

A single parameter scoring 3 lifts an otherwise low total to low-medium, so
one severely deranged vital sign is never hidden by a normal aggregate.
"""

from news2.domain.models import MonitoringFrequency, RiskLevel

MAX_TOTAL_SCORE = 20
MEDIUM_RISK_THRESHOLD = 5
HIGH_RISK_THRESHOLD = 7


def classify_risk(total_score: int, single_param_critical: bool) -> RiskLevel:
    if not 0 <= total_score <= MAX_TOTAL_SCORE:
        raise ValueError(f"total score must be between 0 and {MAX_TOTAL_SCORE}, got {total_score}")

    if total_score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if total_score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    if single_param_critical:
        return RiskLevel.LOW_MEDIUM
    return RiskLevel.LOW


def clinical_response(risk_level: RiskLevel, total_score: int) -> str:
    """Guidance shown to the carer alongside a scored observation."""
    if risk_level == RiskLevel.HIGH:
        return (
            "Urgent assessment by a clinician with critical care competencies is needed. "
            "Consider transfer to higher level care."
        )
    if risk_level == RiskLevel.MEDIUM:
        return (
            "Urgent review by a clinician skilled with competencies in the assessment "
            "of acute illness required."
        )
    if risk_level == RiskLevel.LOW_MEDIUM:
        return (
            "A single vital sign is severely abnormal. Urgent ward-based response: "
            "inform the registered clinician to decide on escalation."
        )
    if total_score == 0:
        return "Continue routine monitoring according to clinical plan."
    return "Clinical assessment and monitoring frequency should be increased as appropriate."


def recommended_frequency(risk_level: RiskLevel, total_score: int) -> MonitoringFrequency:
    """Minimum observation frequency for a risk tier."""
    if risk_level == RiskLevel.HIGH:
        return MonitoringFrequency.EVERY_15_MINUTES
    if risk_level in (RiskLevel.MEDIUM, RiskLevel.LOW_MEDIUM):
        return MonitoringFrequency.HOURLY
    if total_score == 0:
        return MonitoringFrequency.TWELVE_HOURLY
    return MonitoringFrequency.FOUR_HOURLY
