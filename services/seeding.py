"""Placeholder documents for periods that have no real data yet."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from app.schemas import DailyReport, HourRecord, MonthlyReport, WeeklyReport
from datastore.document_store import (
    DAILY_REPORTS,
    HOURLY_RECORDS,
    MONTHLY_REPORTS,
    WEEKLY_REPORTS,
    AggregationStore,
    Document,
    StoreTransaction,
)
from services.timekeys import as_utc, day_key, hour_key, iso_week_key, month_key

logger = logging.getLogger(__name__)


_IDENTITY_FIELDS = frozenset({"date", "hour", "week", "month"})


def neutralize(template: Document) -> Document:
    """Zero numeric fields and null unset ones; period identity fields are kept."""
    neutral: Document = {}
    for field, value in template.items():
        if field in _IDENTITY_FIELDS:
            neutral[field] = value
        elif isinstance(value, bool):
            neutral[field] = False
        elif isinstance(value, int):
            neutral[field] = 0
        elif isinstance(value, float):
            neutral[field] = 0.0
        elif isinstance(value, str):
            neutral[field] = value
        else:
            neutral[field] = None
    return neutral


def _seed_templates(moment: datetime) -> Dict[str, tuple[str, Document]]:
    today = moment.date()
    day = day_key(today)
    week = iso_week_key(today)
    month = month_key(today)
    return {
        HOURLY_RECORDS: (
            hour_key(today, moment.hour),
            HourRecord(date=day, hour=moment.hour, temperature_avg=0.0, ph_avg=0.0).to_document(),
        ),
        DAILY_REPORTS: (
            day,
            DailyReport(date=day, avg_temperature=0.0, avg_ph=0.0, total_feed_kg=0.0).to_document(),
        ),
        WEEKLY_REPORTS: (
            week,
            WeeklyReport(week=week, avg_temperature=0.0, avg_ph=0.0, total_feed_kg=0.0).to_document(),
        ),
        MONTHLY_REPORTS: (
            month,
            MonthlyReport(
                month=month, avg_temperature=0.0, avg_ph=0.0, total_feed_kg=0.0
            ).to_document(),
        ),
    }


class SeedManager:
    """Writes ``isSeed=true`` placeholders that never replace real documents."""

    def __init__(self, store: AggregationStore, source: str = "py-cron") -> None:
        self.store = store
        self.source = source

    def ensure_seed(
        self,
        owner_id: str,
        collection: str,
        key: str,
        template: Document,
        now: Optional[datetime] = None,
    ) -> Optional[Document]:
        """Create a seed at ``key`` unless any document already lives there."""
        stamp = as_utc(now).isoformat()
        seed = neutralize(template)
        seed.pop("updatedAt", None)
        seed.pop("generatedAt", None)
        seed.update(isSeed=True, source=self.source)
        seed["updatedAt" if collection == HOURLY_RECORDS else "generatedAt"] = stamp

        def apply(txn: StoreTransaction) -> Optional[Document]:
            if txn.get(owner_id, collection, key) is not None:
                return None
            txn.set_merge(owner_id, collection, key, seed)
            return seed

        created = self.store.run_atomic(apply)
        if created is not None:
            logger.info(
                "Seed document created",
                extra={"owner_id": owner_id, "collection": collection, "period_key": key},
            )
        return created

    def seed_current_periods(self, owner_id: str, now: Optional[datetime] = None) -> List[str]:
        """Seed the current period of every collection that is still empty.

        Returns the collections that received a seed.
        """
        moment = as_utc(now)
        seeded: List[str] = []
        for collection, (key, template) in _seed_templates(moment).items():
            if self.store.list_documents(owner_id, collection):
                continue
            if self.ensure_seed(owner_id, collection, key, template, now=moment) is not None:
                seeded.append(collection)
        return seeded
