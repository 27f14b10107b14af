"""Water-quality classification used when presenting reports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

PH_RANGE = (6.5, 8.5)
TEMPERATURE_RANGE_C = (24.0, 30.0)
MAX_FAIR_MORTALITY = 3


@dataclass(frozen=True)
class WaterQuality:
    label: str
    score: Optional[int]


UNKNOWN = WaterQuality("Unknown", None)
GOOD = WaterQuality("Good", 90)
FAIR = WaterQuality("Fair", 70)
POOR = WaterQuality("Poor", 40)


def classify_water_quality(
    avg_temperature: Optional[float],
    avg_ph: Optional[float],
    mortality: int = 0,
) -> WaterQuality:
    if avg_temperature is None or avg_ph is None:
        return UNKNOWN

    in_range = (
        PH_RANGE[0] <= avg_ph <= PH_RANGE[1]
        and TEMPERATURE_RANGE_C[0] <= avg_temperature <= TEMPERATURE_RANGE_C[1]
    )
    if in_range and mortality == 0:
        return GOOD
    if mortality <= MAX_FAIR_MORTALITY or in_range:
        return FAIR
    return POOR
