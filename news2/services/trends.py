"""
Deterioration detection between consecutive observations of one patient.

A patient is deteriorating when the total score rises by at least the
configured delta, or when they stop being fully alert. The first observation
of a patient has no baseline and is never flagged.
"""

from pydantic import BaseModel, Field

from news2.domain.models import ConsciousnessLevel, Observation

DEFAULT_SCORE_DELTA = 2


class TrendAssessment(BaseModel):
    """Outcome of comparing an observation with the one before it."""

    deteriorating: bool
    summary: str = Field(description="Human readable delta, e.g. 'score rose 4→7'")
    current_total: int
    previous_total: int | None = None
    score_delta: int | None = None
    consciousness_lost: bool = False


def analyze_trend(
    current: Observation,
    previous: Observation | None,
    score_delta_threshold: int = DEFAULT_SCORE_DELTA,
) -> TrendAssessment:
    current_total = current.total_score

    if previous is None:
        return TrendAssessment(
            deteriorating=False,
            summary=f"first observation, score {current_total}",
            current_total=current_total,
        )

    previous_total = previous.total_score
    delta = current_total - previous_total

    before = previous.vitals.consciousness_level
    after = current.vitals.consciousness_level
    consciousness_lost = before == ConsciousnessLevel.ALERT and after != ConsciousnessLevel.ALERT

    if delta > 0:
        parts = [f"score rose {previous_total}→{current_total}"]
    elif delta < 0:
        parts = [f"score fell {previous_total}→{current_total}"]
    else:
        parts = [f"score unchanged at {current_total}"]
    if before != after:
        parts.append(f"consciousness {before.value}→{after.value}")

    return TrendAssessment(
        deteriorating=delta >= score_delta_threshold or consciousness_lost,
        summary="; ".join(parts),
        current_total=current_total,
        previous_total=previous_total,
        score_delta=delta,
        consciousness_lost=consciousness_lost,
    )
