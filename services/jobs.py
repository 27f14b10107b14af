"""Scheduler-facing batch entry points that fan out over all active owners."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Optional

from app.schemas import BackfillReport, BatchSummary
from datastore.document_store import AggregationStore, Document, build_default_store
from services.backfill import BackfillDriver
from services.hourly import HourlyAggregator
from services.rollup import RollupEngine, RollupLevel
from services.seeding import SeedManager
from services.timekeys import (
    as_utc,
    hour_key,
    parse_day_key,
    parse_iso_week_key,
    parse_month_key,
    previous_day,
    previous_iso_week,
    previous_month,
)
from settings import get_settings
from storage.log_archive import LogArchive, build_default_archive

logger = logging.getLogger(__name__)


class ReportJobs:
    """Runs one unit of work per owner; a failing owner never stops the batch."""

    def __init__(
        self,
        store: AggregationStore,
        archive: LogArchive,
        workers: int = 4,
        source: str = "py-cron",
    ) -> None:
        self.store = store
        self.archive = archive
        self.hourly = HourlyAggregator(store, source=source)
        self.engine = RollupEngine(store, source=source)
        self.seeds = SeedManager(store, source=source)
        self.backfill_driver = BackfillDriver(store, archive, self.engine)
        self.executor = ThreadPoolExecutor(max_workers=workers)

    def sample_all(self, now: Optional[datetime] = None) -> BatchSummary:
        moment = as_utc(now)

        def work(owner_id: str) -> Any:
            snapshot = self.hourly.read_snapshot(owner_id)
            return self.hourly.sample(owner_id, snapshot, now=moment)

        return self._run_batch("hour", hour_key(moment.date(), moment.hour), work)

    def rollup_day(
        self, date_key: Optional[str] = None, now: Optional[datetime] = None
    ) -> BatchSummary:
        moment = as_utc(now)
        period = previous_day(moment.date()) if date_key is None else date_key
        parse_day_key(period)
        return self._run_rollup(RollupLevel.day, period, moment)

    def rollup_week(
        self, week_key: Optional[str] = None, now: Optional[datetime] = None
    ) -> BatchSummary:
        moment = as_utc(now)
        period = previous_iso_week(moment.date()) if week_key is None else week_key
        parse_iso_week_key(period)
        return self._run_rollup(RollupLevel.week, period, moment)

    def rollup_month(
        self, month_key: Optional[str] = None, now: Optional[datetime] = None
    ) -> BatchSummary:
        moment = as_utc(now)
        period = previous_month(moment.date()) if month_key is None else month_key
        parse_month_key(period)
        return self._run_rollup(RollupLevel.month, period, moment)

    def seed_all(self, now: Optional[datetime] = None) -> BatchSummary:
        """Seed current periods for owners whose collections are still empty."""
        moment = as_utc(now)

        def work(owner_id: str) -> Any:
            return self.seeds.seed_current_periods(owner_id, now=moment) or None

        return self._run_batch("seed", hour_key(moment.date(), moment.hour), work)

    def record_feed(
        self,
        owner_id: str,
        amount_kg: float,
        now: Optional[datetime] = None,
    ) -> Document:
        """Add a live feed event to the owner's current hour record."""
        return self.hourly.record_feed(owner_id, amount_kg, now=now)

    def backfill(
        self,
        owner_id: str,
        start: date,
        end: date,
        now: Optional[datetime] = None,
    ) -> BackfillReport:
        return self.backfill_driver.backfill_all(owner_id, start, end, now=now)

    def shutdown(self) -> None:
        """Release worker threads during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _run_rollup(self, level: RollupLevel, period: str, moment: datetime) -> BatchSummary:
        return self._run_batch(
            level.value,
            period,
            lambda owner_id: self.engine.rollup(owner_id, level, period, now=moment),
        )

    def _run_batch(
        self,
        level: str,
        period: str,
        work: Callable[[str], Any],
    ) -> BatchSummary:
        owners = self.store.list_active_owners()
        processed = skipped = errors = 0

        futures = {self.executor.submit(work, owner_id): owner_id for owner_id in owners}
        for future in as_completed(futures):
            owner_id = futures[future]
            try:
                result = future.result()
            except Exception:
                errors += 1
                logger.exception(
                    "Owner failed during batch run",
                    extra={"owner_id": owner_id, "level": level, "period_key": period},
                )
                continue
            if result is None:
                skipped += 1
            else:
                processed += 1

        summary = BatchSummary(
            processed=processed,
            skipped=skipped,
            errors=errors,
            period_key=period,
            timestamp=as_utc(),
        )
        logger.info(
            "Batch run finished",
            extra={
                "level": level,
                "period_key": period,
                "processed": processed,
                "skipped": skipped,
                "errors": errors,
            },
        )
        return summary


@lru_cache
def build_default_jobs(workers: Optional[int] = None) -> ReportJobs:
    """Factory that wires the batch jobs with the default store and archive."""
    settings = get_settings()
    return ReportJobs(
        store=build_default_store(),
        archive=build_default_archive(),
        workers=workers or settings.job_workers,
        source=settings.source_tag,
    )
