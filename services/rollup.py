"""Hierarchical rollup of hour records into daily, weekly and monthly reports.

One algorithm serves all three transitions. ``LEVEL_CONFIG`` maps each level
to the collection it reads, the collection it writes and the child keys that
make up a target period. Seed documents are filtered out before any math,
and a period without real children yields ``None`` so that an existing
report is never overwritten with empty values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from operator import itemgetter
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from app.schemas import DailyReport, MonthlyReport, ReportBase, WeeklyReport
from datastore.document_store import (
    DAILY_REPORTS,
    HOURLY_RECORDS,
    MONTHLY_REPORTS,
    WEEKLY_REPORTS,
    AggregationStore,
    Document,
)
from models.records import METRICS
from services.hourly import coerce_reading
from services.timekeys import (
    as_utc,
    dates_in_iso_week,
    dates_in_month,
    day_key,
    hour_keys_for_day,
    parse_day_key,
)

logger = logging.getLogger(__name__)

_METRIC_FIELDS = {"temperature": "avgTemperature", "ph": "avgPh"}


class RollupLevel(str, Enum):
    day = "day"
    week = "week"
    month = "month"


@dataclass(frozen=True)
class LevelConfig:
    """Where a rollup level reads from and writes to.

    Attributes:
        source_collection: Collection holding the child records.
        target_collection: Collection receiving the rolled-up report.
        key_field: Report field that repeats the period key.
        coverage_field: Report field holding the child coverage count.
        child_keys: Maps a target period key to the keys of its children.
        model: Schema used to validate the report before writing.
    """

    source_collection: str
    target_collection: str
    key_field: str
    coverage_field: str
    child_keys: Callable[[str], List[str]]
    model: Type[ReportBase]


LEVEL_CONFIG: Dict[RollupLevel, LevelConfig] = {
    RollupLevel.day: LevelConfig(
        source_collection=HOURLY_RECORDS,
        target_collection=DAILY_REPORTS,
        key_field="date",
        coverage_field="coverageHours",
        child_keys=lambda key: hour_keys_for_day(parse_day_key(key)),
        model=DailyReport,
    ),
    RollupLevel.week: LevelConfig(
        source_collection=DAILY_REPORTS,
        target_collection=WEEKLY_REPORTS,
        key_field="week",
        coverage_field="coverageDays",
        child_keys=lambda key: [day_key(day) for day in dates_in_iso_week(key)],
        model=WeeklyReport,
    ),
    RollupLevel.month: LevelConfig(
        source_collection=DAILY_REPORTS,
        target_collection=MONTHLY_REPORTS,
        key_field="month",
        coverage_field="coverageDays",
        child_keys=lambda key: [day_key(day) for day in dates_in_month(key)],
        model=MonthlyReport,
    ),
}


def _reading_weight(record: Document, metric: str) -> int:
    """Number of samples behind an hour's average; records without a count weigh 1."""
    if coerce_reading(record.get(f"{metric}Avg")) is None:
        return 0
    raw_count = record.get(f"{metric}Count")
    if raw_count is None:
        return 1
    try:
        return max(int(raw_count), 0)
    except (TypeError, ValueError):
        return 0


def aggregate_hours(children: Sequence[Tuple[str, Document]]) -> Optional[Document]:
    """Weighted hour -> day aggregation. ``None`` when no hour holds a reading."""
    sums = {metric: 0.0 for metric in METRICS}
    counts = {metric: 0 for metric in METRICS}
    total_feed = 0.0
    has_feed = False
    coverage = 0

    for _key, record in children:
        has_reading = False
        for metric in METRICS:
            weight = _reading_weight(record, metric)
            if weight == 0:
                continue
            sums[metric] += float(record[f"{metric}Avg"]) * weight
            counts[metric] += weight
            has_reading = True

        feed = coerce_reading(record.get("feedUsedKg"))
        if feed is not None and feed > 0:
            total_feed += feed
            has_feed = True

        if has_reading:
            coverage += 1

    if coverage == 0:
        return None

    fields: Document = {
        _METRIC_FIELDS[metric]: sums[metric] / counts[metric] if counts[metric] else None
        for metric in METRICS
    }
    fields["totalFeedKg"] = total_feed if has_feed else None
    fields["coverageHours"] = coverage
    return fields


def aggregate_days(children: Sequence[Tuple[str, Document]]) -> Optional[Document]:
    """Plain mean of daily averages for day -> week and day -> month."""
    if not children:
        return None

    collected: Dict[str, List[float]] = {metric: [] for metric in METRICS}
    total_feed: Optional[float] = None

    for _key, report in children:
        feed = coerce_reading(report.get("totalFeedKg"))
        if feed is None:
            feed = coerce_reading(report.get("feedUsedKg"))
        if feed is not None:
            total_feed = (total_feed or 0.0) + feed

        for metric, field in _METRIC_FIELDS.items():
            value = coerce_reading(report.get(field))
            if value is not None:
                collected[metric].append(value)

    fields: Document = {
        _METRIC_FIELDS[metric]: sum(values) / len(values) if values else None
        for metric, values in collected.items()
    }
    fields["totalFeedKg"] = total_feed
    fields["coverageDays"] = len(children)
    return fields


class RollupEngine:
    """Derives one report from the level directly beneath it."""

    def __init__(self, store: AggregationStore, source: str = "py-cron") -> None:
        self.store = store
        self.source = source

    def compute(self, owner_id: str, level: RollupLevel, period_key: str) -> Optional[Document]:
        """Return the report fields for ``period_key`` without writing them.

        Raises:
            InvalidFormat: If ``period_key`` does not match the level's format.
        """
        config = LEVEL_CONFIG[level]
        wanted = set(config.child_keys(period_key))
        children = sorted(
            (
                (key, document)
                for key, document in self.store.list_documents(owner_id, config.source_collection)
                if key in wanted and document.get("isSeed") is not True
            ),
            key=itemgetter(0),
        )
        if not children:
            return None

        if level is RollupLevel.day:
            fields = aggregate_hours(children)
        else:
            fields = aggregate_days(children)
        if fields is None:
            return None

        fields[config.key_field] = period_key
        fields["isSeed"] = False
        fields["source"] = self.source
        return fields

    def rollup(
        self,
        owner_id: str,
        level: RollupLevel,
        period_key: str,
        now: Optional[datetime] = None,
    ) -> Optional[Document]:
        """Compute and merge-write a report; ``None`` means no data and no write."""
        config = LEVEL_CONFIG[level]
        fields = self.compute(owner_id, level, period_key)
        if fields is None:
            logger.info(
                "No coverage for period; existing report left untouched",
                extra={"owner_id": owner_id, "level": level.value, "period_key": period_key},
            )
            return None

        fields["generatedAt"] = as_utc(now).isoformat()
        document = config.model.model_validate(fields).to_document()
        self.store.set_document_merge(owner_id, config.target_collection, period_key, document)
        logger.debug(
            "Report written",
            extra={
                "owner_id": owner_id,
                "level": level.value,
                "period_key": period_key,
                "coverage": fields[config.coverage_field],
            },
        )
        return document
