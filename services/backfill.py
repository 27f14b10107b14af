"""Historical replays: rebuild hour records from raw logs and re-run rollups."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, TextIO

from app.schemas import BackfillReport, HourRecord, LevelCounts
from datastore.document_store import DAILY_REPORTS, HOURLY_RECORDS, AggregationStore
from errors import InvalidFormat
from models.records import METRICS, FeedEvent, SensorReading
from services.hourly import coerce_reading
from services.rollup import RollupEngine, RollupLevel
from services.timekeys import (
    as_utc,
    day_key,
    hour_key,
    iso_week_key,
    iter_dates,
    month_key,
    parse_day_key,
    parse_hour_key,
)
from storage.log_archive import LogArchive, feed_log_key, reading_log_key

logger = logging.getLogger(__name__)

_LOG_KINDS = frozenset({"readings", "feed"})


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


@dataclass
class BackfillResult:
    """Outcome of replaying one rollup level across its historical periods."""

    processed: int = 0
    skipped: int = 0
    periods: List[str] = field(default_factory=list)

    def as_counts(self) -> LevelCounts:
        return LevelCounts(processed=self.processed, skipped=self.skipped)


@dataclass
class _HourBucket:
    sums: Dict[str, float] = field(default_factory=lambda: {metric: 0.0 for metric in METRICS})
    counts: Dict[str, int] = field(default_factory=lambda: {metric: 0 for metric in METRICS})
    feed_kg: float = 0.0

    def to_record(self, day: date, hour: int, source: str, stamp: datetime) -> HourRecord:
        def avg(metric: str) -> Optional[float]:
            count = self.counts[metric]
            return self.sums[metric] / count if count else None

        return HourRecord(
            date=day_key(day),
            hour=hour,
            temperature_sum=self.sums["temperature"],
            temperature_count=self.counts["temperature"],
            temperature_avg=avg("temperature"),
            ph_sum=self.sums["ph"],
            ph_count=self.counts["ph"],
            ph_avg=avg("ph"),
            feed_used_kg=self.feed_kg,
            is_seed=False,
            source=source,
            updated_at=stamp,
        )


def _read_rows(
    handle: TextIO, object_key: str, required: Set[str]
) -> Iterator[tuple[int, Dict[str, str]]]:
    reader = csv.DictReader(handle)
    if not reader.fieldnames:
        raise ValueError(f"Log {object_key} is missing a header row.")

    normalized = {name.lower().strip(): name for name in reader.fieldnames}
    missing = sorted(required - normalized.keys())
    if missing:
        raise ValueError(f"Log {object_key} missing required columns: {', '.join(missing)}")

    for row_number, row in enumerate(reader, start=2):
        yield row_number, {
            column: (row.get(normalized[column]) or "").strip() for column in required
        }


def _skip(object_key: str, row_number: int, reason: str) -> None:
    logger.warning(
        "Skipping row %s of %s: %s",
        row_number,
        object_key,
        reason,
        extra={"object_key": object_key, "row_number": row_number, "reason": reason},
    )


class BackfillDriver:
    """Replays the pipeline over historical data for a single owner."""

    def __init__(
        self,
        store: AggregationStore,
        archive: LogArchive,
        engine: RollupEngine,
        source: str = "backfill",
    ) -> None:
        self.store = store
        self.archive = archive
        self.engine = engine
        self.source = source

    def read_sensor_log(self, owner_id: str, day: date) -> List[SensorReading]:
        key = reading_log_key(owner_id, day)
        if not self.archive.has_object(key):
            return []

        readings: List[SensorReading] = []
        with self.archive.open_text_object(key) as handle:
            for row_number, row in _read_rows(handle, key, {"sensor", "timestamp", "value"}):
                sensor = row["sensor"].lower()
                if sensor not in METRICS:
                    _skip(key, row_number, "unknown sensor")
                    continue
                try:
                    timestamp = parse_timestamp(row["timestamp"])
                except ValueError:
                    _skip(key, row_number, "invalid timestamp")
                    continue
                if timestamp.date() != day:
                    _skip(key, row_number, "timestamp outside log date")
                    continue
                value = coerce_reading(row["value"])
                if value is None:
                    _skip(key, row_number, "invalid numeric value")
                    continue
                readings.append(SensorReading(sensor=sensor, timestamp=timestamp, value=value))
        return readings

    def read_feed_log(self, owner_id: str, day: date) -> List[FeedEvent]:
        key = feed_log_key(owner_id, day)
        if not self.archive.has_object(key):
            return []

        events: List[FeedEvent] = []
        with self.archive.open_text_object(key) as handle:
            for row_number, row in _read_rows(handle, key, {"timestamp", "amount_kg"}):
                try:
                    timestamp = parse_timestamp(row["timestamp"])
                except ValueError:
                    _skip(key, row_number, "invalid timestamp")
                    continue
                if timestamp.date() != day:
                    _skip(key, row_number, "timestamp outside log date")
                    continue
                amount = coerce_reading(row["amount_kg"])
                if amount is None:
                    _skip(key, row_number, "invalid numeric value")
                    continue
                if amount <= 0:
                    _skip(key, row_number, "non-positive feed amount")
                    continue
                events.append(FeedEvent(timestamp=timestamp, amount_kg=amount))
        return events

    def logged_dates(self, owner_id: str, start: date, end: date) -> List[date]:
        """Dates in ``start..end`` for which a sensor or feed log is archived."""
        found: Set[date] = set()
        for key in self.archive.list_objects(f"{owner_id}/"):
            kind, _, filename = key[len(owner_id) + 1 :].partition("/")
            if kind not in _LOG_KINDS or not filename.endswith(".csv"):
                continue
            try:
                found.add(parse_day_key(filename[: -len(".csv")]))
            except InvalidFormat:
                logger.warning(
                    "Ignoring archived log with malformed name",
                    extra={"owner_id": owner_id, "object_key": key},
                )
        return [day for day in iter_dates(start, end) if day in found]

    def backfill_hours(
        self,
        owner_id: str,
        start: date,
        end: date,
        now: Optional[datetime] = None,
    ) -> int:
        """Rewrite hour records for ``start..end`` from archived logs.

        Each hour gets a clean average over every archived reading in it,
        replacing any running values. Returns the number of hours written.
        """
        if end < start:
            raise ValueError("Backfill end date precedes start date.")

        stamp = as_utc(now)
        written = 0
        for day in self.logged_dates(owner_id, start, end):
            buckets: Dict[int, _HourBucket] = {}
            for reading in self.read_sensor_log(owner_id, day):
                bucket = buckets.setdefault(reading.timestamp.hour, _HourBucket())
                bucket.sums[reading.sensor] += reading.value
                bucket.counts[reading.sensor] += 1
            for event in self.read_feed_log(owner_id, day):
                bucket = buckets.setdefault(event.timestamp.hour, _HourBucket())
                bucket.feed_kg += event.amount_kg

            for hour in sorted(buckets):
                record = buckets[hour].to_record(day, hour, self.source, stamp)
                self.store.set_document_merge(
                    owner_id, HOURLY_RECORDS, hour_key(day, hour), record.to_document()
                )
                written += 1

        logger.info(
            "Hour records backfilled",
            extra={"owner_id": owner_id, "level": "hour", "processed": written},
        )
        return written

    def backfill_days(self, owner_id: str, now: Optional[datetime] = None) -> BackfillResult:
        days = set()
        for key, _document in self.store.list_documents(owner_id, HOURLY_RECORDS):
            try:
                day, _hour = parse_hour_key(key)
            except InvalidFormat:
                logger.warning(
                    "Ignoring hour record with malformed key",
                    extra={"owner_id": owner_id, "period_key": key},
                )
                continue
            days.add(day_key(day))
        return self._replay(owner_id, RollupLevel.day, days, now)

    def backfill_weeks(self, owner_id: str, now: Optional[datetime] = None) -> BackfillResult:
        return self._replay(
            owner_id, RollupLevel.week, self._daily_periods(owner_id, iso_week_key), now
        )

    def backfill_months(self, owner_id: str, now: Optional[datetime] = None) -> BackfillResult:
        return self._replay(
            owner_id, RollupLevel.month, self._daily_periods(owner_id, month_key), now
        )

    def backfill_all(
        self,
        owner_id: str,
        start: date,
        end: date,
        now: Optional[datetime] = None,
    ) -> BackfillReport:
        hours = self.backfill_hours(owner_id, start, end, now=now)
        days = self.backfill_days(owner_id, now=now)
        weeks = self.backfill_weeks(owner_id, now=now)
        months = self.backfill_months(owner_id, now=now)
        return BackfillReport(
            owner_id=owner_id,
            hours_written=hours,
            days=days.as_counts(),
            weeks=weeks.as_counts(),
            months=months.as_counts(),
        )

    def _daily_periods(self, owner_id: str, to_key: Callable[[date], str]) -> Set[str]:
        periods = set()
        for key, document in self.store.list_documents(owner_id, DAILY_REPORTS):
            if document.get("isSeed") is True:
                continue
            try:
                periods.add(to_key(parse_day_key(key)))
            except InvalidFormat:
                logger.warning(
                    "Ignoring daily report with malformed key",
                    extra={"owner_id": owner_id, "period_key": key},
                )
        return periods

    def _replay(
        self,
        owner_id: str,
        level: RollupLevel,
        periods: Iterable[str],
        now: Optional[datetime],
    ) -> BackfillResult:
        result = BackfillResult()
        for period in sorted(periods):
            if self.engine.rollup(owner_id, level, period, now=now) is None:
                result.skipped += 1
            else:
                result.processed += 1
                result.periods.append(period)
        logger.info(
            "Rollup replay finished",
            extra={
                "owner_id": owner_id,
                "level": level.value,
                "processed": result.processed,
                "skipped": result.skipped,
            },
        )
        return result
