"""
NEWS2 component scoring.

Pure functions only: raw vital signs in, per-parameter scores out. Bands are
expressed as ``(inclusive upper bound, score)`` pairs walked in order, so every
value inside the validated range lands in exactly one band.
"""

import math
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from news2.domain.errors import InvalidObservation
from news2.domain.models import ComponentScores, ConsciousnessLevel, RawVitals

Bands = tuple[tuple[float, int], ...]

RESPIRATORY_RATE_BANDS: Bands = ((8, 3), (11, 1), (20, 0), (24, 2), (math.inf, 3))
OXYGEN_SATURATION_BANDS: Bands = ((91, 3), (93, 2), (95, 1), (math.inf, 0))
SYSTOLIC_BP_BANDS: Bands = ((90, 3), (100, 2), (110, 1), (219, 0), (math.inf, 3))
PULSE_RATE_BANDS: Bands = ((40, 3), (50, 1), (90, 0), (110, 1), (130, 2), (math.inf, 3))
TEMPERATURE_BANDS: Bands = ((35.0, 3), (36.0, 1), (38.0, 0), (39.0, 1), (math.inf, 2))

SUPPLEMENTAL_OXYGEN_SCORE = 2
ALTERED_CONSCIOUSNESS_SCORE = 3


def band_score(value: float, bands: Bands) -> int:
    """Return the score of the first band whose upper bound is >= value."""
    for upper, score in bands:
        if value <= upper:
            return score
    # math.inf closes every table
    raise ValueError(f"value {value} is outside every band")


def validate_vitals(raw: Mapping[str, Any] | RawVitals) -> RawVitals:
    """
    Turn an untyped record from the ingestion boundary into ``RawVitals``.

    Raises:
        InvalidObservation: naming the first missing or out-of-range field.
    """
    if isinstance(raw, RawVitals):
        return raw
    try:
        return RawVitals.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "vitals"
        raise InvalidObservation(field, first["msg"]) from e


def calculate_scores(vitals: RawVitals) -> ComponentScores:
    """Score each vital sign against its NEWS2 band table."""
    return ComponentScores(
        respiratory_rate=band_score(vitals.respiratory_rate, RESPIRATORY_RATE_BANDS),
        oxygen_saturation=band_score(vitals.oxygen_saturation, OXYGEN_SATURATION_BANDS),
        supplemental_oxygen=SUPPLEMENTAL_OXYGEN_SCORE if vitals.supplemental_oxygen else 0,
        systolic_bp=band_score(vitals.systolic_bp, SYSTOLIC_BP_BANDS),
        pulse_rate=band_score(vitals.pulse_rate, PULSE_RATE_BANDS),
        consciousness_level=(
            0
            if vitals.consciousness_level == ConsciousnessLevel.ALERT
            else ALTERED_CONSCIOUSNESS_SCORE
        ),
        temperature=band_score(vitals.temperature, TEMPERATURE_BANDS),
    )
