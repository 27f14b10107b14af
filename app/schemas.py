"""Pydantic schemas for stored documents and the HTTP API layer.

Stored documents use camelCase field names; the models expose snake_case
attributes and accept either spelling on input.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReportLevel(str, Enum):
    """Report granularities exposed via the API."""

    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class ExportFormat(str, Enum):
    csv = "csv"
    pdf = "pdf"
    word = "word"


class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """Serialize to the camelCase, JSON-safe shape held by the store."""
        return self.model_dump(mode="json", by_alias=True)


class HourRecord(DocumentModel):
    """Running sums and averages for one owner-hour."""

    date: str
    hour: int = Field(..., ge=0, le=23)
    temperature_sum: float = 0.0
    temperature_count: int = Field(default=0, ge=0)
    temperature_avg: Optional[float] = None
    ph_sum: float = 0.0
    ph_count: int = Field(default=0, ge=0)
    ph_avg: Optional[float] = None
    feed_used_kg: float = 0.0
    is_seed: bool = False
    source: Optional[str] = None
    updated_at: Optional[datetime] = None


class ReportBase(DocumentModel):
    avg_temperature: Optional[float] = None
    avg_ph: Optional[float] = None
    total_feed_kg: Optional[float] = None
    is_seed: bool = False
    generated_at: Optional[datetime] = None
    source: Optional[str] = None


class DailyReport(ReportBase):
    date: str
    coverage_hours: int = Field(default=0, ge=0, le=24)


class WeeklyReport(ReportBase):
    week: str
    coverage_days: int = Field(default=0, ge=0, le=7)


class MonthlyReport(ReportBase):
    month: str
    coverage_days: int = Field(default=0, ge=0, le=31)


class BatchSummary(DocumentModel):
    """Outcome counts for one scheduled batch run."""

    processed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    period_key: Optional[str] = None
    timestamp: datetime


class LevelCounts(DocumentModel):
    processed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)


class BackfillReport(DocumentModel):
    """Counts produced by a full backfill of one owner."""

    owner_id: str
    hours_written: int = Field(default=0, ge=0)
    days: LevelCounts = Field(default_factory=LevelCounts)
    weeks: LevelCounts = Field(default_factory=LevelCounts)
    months: LevelCounts = Field(default_factory=LevelCounts)
