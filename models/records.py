"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


TEMPERATURE = "temperature"
PH = "ph"
METRICS = (TEMPERATURE, PH)


@dataclass(slots=True)
class SensorSnapshot:
    """Instantaneous pond readings; either metric may be missing."""

    temperature: Optional[float] = None
    ph: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.temperature is None and self.ph is None


@dataclass(slots=True)
class SensorReading:
    """A single archived sensor reading parsed from a log CSV."""

    sensor: str
    timestamp: datetime
    value: float


@dataclass(slots=True)
class FeedEvent:
    """A feed-schedule event parsed from a feed log CSV."""

    timestamp: datetime
    amount_kg: float
