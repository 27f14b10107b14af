"""Incremental hour-bucket aggregation of live sensor snapshots."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Optional

from app.schemas import HourRecord
from datastore.document_store import (
    HOURLY_RECORDS,
    SENSORS,
    AggregationStore,
    Document,
    StoreTransaction,
)
from models.records import METRICS, SensorSnapshot
from services.timekeys import as_utc, day_key, hour_key

logger = logging.getLogger(__name__)


def coerce_reading(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None`` when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


class HourlyAggregator:
    """Maintains running sum/count/average per metric in the current hour record."""

    def __init__(self, store: AggregationStore, source: str = "py-cron") -> None:
        self.store = store
        self.source = source

    def read_snapshot(self, owner_id: str) -> SensorSnapshot:
        values = {}
        for metric in METRICS:
            document = self.store.get_document(owner_id, SENSORS, metric)
            values[metric] = coerce_reading(document.get("value")) if document else None
        return SensorSnapshot(**values)

    def sample(
        self,
        owner_id: str,
        snapshot: SensorSnapshot,
        now: Optional[datetime] = None,
    ) -> Optional[Document]:
        """Fold one snapshot into the hour record; ``None`` when nothing was read."""
        if snapshot.is_empty:
            return None

        moment = as_utc(now)
        key = hour_key(moment.date(), moment.hour)
        stamp = moment.isoformat()

        def apply(txn: StoreTransaction) -> Optional[Document]:
            record = self._current_record(txn, owner_id, key, moment)
            for metric in METRICS:
                total = float(record.get(f"{metric}Sum") or 0.0)
                count = int(record.get(f"{metric}Count") or 0)
                value = getattr(snapshot, metric)
                if value is not None:
                    total += value
                    count += 1
                record[f"{metric}Sum"] = total
                record[f"{metric}Count"] = count
                record[f"{metric}Avg"] = total / count if count else None
            record.update(isSeed=False, source=self.source, updatedAt=stamp)
            txn.set_merge(owner_id, HOURLY_RECORDS, key, record)
            return txn.get(owner_id, HOURLY_RECORDS, key)

        return self.store.run_atomic(apply)

    def record_feed(
        self,
        owner_id: str,
        amount_kg: float,
        now: Optional[datetime] = None,
    ) -> Document:
        """Add a feed amount to the running ``feedUsedKg`` of the current hour."""
        amount = coerce_reading(amount_kg)
        if amount is None or amount <= 0:
            raise ValueError("Feed amount must be a positive number of kilograms.")

        moment = as_utc(now)
        key = hour_key(moment.date(), moment.hour)

        def apply(txn: StoreTransaction) -> Document:
            record = self._current_record(txn, owner_id, key, moment)
            record["feedUsedKg"] = float(record.get("feedUsedKg") or 0.0) + amount
            record.update(isSeed=False, source=self.source, updatedAt=moment.isoformat())
            txn.set_merge(owner_id, HOURLY_RECORDS, key, record)
            return txn.get(owner_id, HOURLY_RECORDS, key) or record

        document = self.store.run_atomic(apply)
        logger.info(
            "Recorded feed event",
            extra={"owner_id": owner_id, "period_key": key},
        )
        return document

    @staticmethod
    def _current_record(
        txn: StoreTransaction, owner_id: str, key: str, moment: datetime
    ) -> Document:
        existing = txn.get(owner_id, HOURLY_RECORDS, key)
        if existing is None or existing.get("isSeed") is True:
            # Seeds only hold neutral values; real data starts from zero.
            return HourRecord(date=day_key(moment.date()), hour=moment.hour).to_document()
        return existing
