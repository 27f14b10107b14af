from __future__ import annotations

import logging
from datetime import date, datetime, timezone

import pytest

from datastore.document_store import (
    DAILY_REPORTS,
    HOURLY_RECORDS,
    MONTHLY_REPORTS,
    WEEKLY_REPORTS,
    MockDocumentStore,
)
from services.backfill import BackfillDriver, parse_timestamp
from services.rollup import RollupEngine
from storage.log_archive import LogArchive, feed_log_key, reading_log_key

OWNER = "owner-1"
NOW = datetime(2025, 2, 3, 6, 0, tzinfo=timezone.utc)

READINGS_CSV = """sensor,timestamp,value
temperature,2025-01-15T00:05:00Z,24
temperature,2025-01-15T00:35:00Z,26
ph,2025-01-15T00:10:00Z,7.0
humidity,2025-01-15T00:20:00Z,40
temperature,not-a-time,25
temperature,2025-01-16T00:05:00Z,30
ph,2025-01-15T02:00:00Z,abc
temperature,2025-01-15T02:00:00+02:00,22
"""

FEED_CSV = """timestamp,amount_kg
2025-01-15T00:30:00Z,1.5
2025-01-15T03:00:00Z,2.0
2025-01-15T04:00:00Z,0
"""


@pytest.fixture()
def store() -> MockDocumentStore:
    return MockDocumentStore()


@pytest.fixture()
def archive() -> LogArchive:
    archive = LogArchive(name="memory")
    archive.put_object(reading_log_key(OWNER, date(2025, 1, 15)), READINGS_CSV.encode("utf-8"))
    archive.put_object(feed_log_key(OWNER, date(2025, 1, 15)), FEED_CSV.encode("utf-8"))
    return archive


@pytest.fixture()
def driver(store: MockDocumentStore, archive: LogArchive) -> BackfillDriver:
    return BackfillDriver(store, archive, RollupEngine(store, source="backfill"))


def test_parse_timestamp_normalises_to_utc() -> None:
    assert parse_timestamp("2025-01-15T02:00:00+02:00") == datetime(2025, 1, 15, 0, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-15T02:00:00Z").tzinfo == timezone.utc
    assert parse_timestamp("2025-01-15 02:00:00").hour == 2
    with pytest.raises(ValueError):
        parse_timestamp("  ")
    with pytest.raises(ValueError):
        parse_timestamp("yesterday")


def test_read_sensor_log_skips_bad_rows(driver: BackfillDriver, caplog) -> None:
    caplog.set_level(logging.WARNING, logger="services.backfill")

    readings = driver.read_sensor_log(OWNER, date(2025, 1, 15))

    assert [(r.sensor, r.timestamp.hour, r.value) for r in readings] == [
        ("temperature", 0, 24.0),
        ("temperature", 0, 26.0),
        ("ph", 0, 7.0),
        ("temperature", 0, 22.0),
    ]
    reasons = [record.reason for record in caplog.records if record.name == "services.backfill"]
    assert reasons == [
        "unknown sensor",
        "invalid timestamp",
        "timestamp outside log date",
        "invalid numeric value",
    ]


def test_missing_log_yields_nothing(driver: BackfillDriver) -> None:
    assert driver.read_sensor_log(OWNER, date(2025, 1, 16)) == []
    assert driver.read_feed_log("owner-2", date(2025, 1, 15)) == []


def test_log_without_required_columns_is_rejected(store, archive) -> None:
    archive.put_object(reading_log_key(OWNER, date(2025, 1, 17)), b"sensor,value\ntemperature,24\n")
    driver = BackfillDriver(store, archive, RollupEngine(store))

    with pytest.raises(ValueError, match="timestamp"):
        driver.read_sensor_log(OWNER, date(2025, 1, 17))


def test_feed_log_drops_non_positive_amounts(driver: BackfillDriver, caplog) -> None:
    caplog.set_level(logging.WARNING, logger="services.backfill")

    events = driver.read_feed_log(OWNER, date(2025, 1, 15))

    assert [event.amount_kg for event in events] == [1.5, 2.0]
    assert any(record.reason == "non-positive feed amount" for record in caplog.records)


def test_backfill_hours_rebuilds_clean_records(driver: BackfillDriver, store) -> None:
    store.set_document_merge(
        OWNER,
        HOURLY_RECORDS,
        "2025-01-15T00",
        {"temperatureSum": 500.0, "temperatureCount": 10, "temperatureAvg": 50.0, "feedUsedKg": 9.0},
    )

    written = driver.backfill_hours(OWNER, date(2025, 1, 15), date(2025, 1, 16), now=NOW)

    assert written == 2
    midnight = store.get_document(OWNER, HOURLY_RECORDS, "2025-01-15T00")
    assert midnight["temperatureCount"] == 3
    assert midnight["temperatureSum"] == 72.0
    assert midnight["temperatureAvg"] == 24.0
    assert midnight["phAvg"] == 7.0
    assert midnight["phCount"] == 1
    assert midnight["feedUsedKg"] == 1.5
    assert midnight["isSeed"] is False
    assert midnight["source"] == "backfill"

    feed_only = store.get_document(OWNER, HOURLY_RECORDS, "2025-01-15T03")
    assert feed_only["temperatureCount"] == 0
    assert feed_only["temperatureAvg"] is None
    assert feed_only["feedUsedKg"] == 2.0


def test_backfill_hours_rejects_reversed_range(driver: BackfillDriver) -> None:
    with pytest.raises(ValueError):
        driver.backfill_hours(OWNER, date(2025, 1, 16), date(2025, 1, 15), now=NOW)


def test_backfill_all_rebuilds_every_level(driver: BackfillDriver, store) -> None:
    report = driver.backfill_all(OWNER, date(2025, 1, 15), date(2025, 1, 15), now=NOW)

    assert report.owner_id == OWNER
    assert report.hours_written == 2
    assert report.days.processed == 1
    assert report.weeks.processed == 1
    assert report.months.processed == 1

    daily = store.get_document(OWNER, DAILY_REPORTS, "2025-01-15")
    assert daily["avgTemperature"] == 24.0
    assert daily["avgPh"] == 7.0
    assert daily["totalFeedKg"] == 3.5
    assert daily["coverageHours"] == 1
    assert store.get_document(OWNER, WEEKLY_REPORTS, "2025-W03")["coverageDays"] == 1
    assert store.get_document(OWNER, MONTHLY_REPORTS, "2025-01")["totalFeedKg"] == 3.5


def test_backfill_days_counts_periods_without_coverage(driver: BackfillDriver, store) -> None:
    store.set_document_merge(OWNER, HOURLY_RECORDS, "2025-01-10T05", {"feedUsedKg": 1.0})
    store.set_document_merge(OWNER, HOURLY_RECORDS, "2025-01-11T05", {"temperatureAvg": 25.0})

    result = driver.backfill_days(OWNER, now=NOW)

    assert result.processed == 1
    assert result.skipped == 1
    assert result.periods == ["2025-01-11"]


def test_weeks_and_months_ignore_seed_daily_reports(driver: BackfillDriver, store) -> None:
    store.set_document_merge(OWNER, DAILY_REPORTS, "2025-03-03", {"avgTemperature": 0.0, "isSeed": True})
    store.set_document_merge(OWNER, DAILY_REPORTS, "2025-01-15", {"avgTemperature": 25.0, "isSeed": False})

    weeks = driver.backfill_weeks(OWNER, now=NOW)
    months = driver.backfill_months(OWNER, now=NOW)

    assert weeks.periods == ["2025-W03"]
    assert months.periods == ["2025-01"]
    assert store.get_document(OWNER, MONTHLY_REPORTS, "2025-03") is None


def test_non_finite_values_are_skipped(store, archive, caplog) -> None:
    archive.put_object(
        reading_log_key(OWNER, date(2025, 1, 18)),
        b"sensor,timestamp,value\n"
        b"temperature,2025-01-18T00:05:00Z,24\n"
        b"temperature,2025-01-18T00:10:00Z,nan\n"
        b"temperature,2025-01-18T00:15:00Z,inf\n"
        b"ph,2025-01-18T00:20:00Z,1e309\n"
        b"temperature,2025-01-18T00:25:00Z,26\n",
    )
    archive.put_object(
        feed_log_key(OWNER, date(2025, 1, 18)),
        b"timestamp,amount_kg\n2025-01-18T00:30:00Z,-inf\n2025-01-18T00:40:00Z,NaN\n2025-01-18T00:50:00Z,1.0\n",
    )
    driver = BackfillDriver(store, archive, RollupEngine(store))
    caplog.set_level(logging.WARNING, logger="services.backfill")

    driver.backfill_hours(OWNER, date(2025, 1, 18), date(2025, 1, 18), now=NOW)

    record = store.get_document(OWNER, HOURLY_RECORDS, "2025-01-18T00")
    assert record["temperatureCount"] == 2
    assert record["temperatureAvg"] == 25.0
    assert record["phCount"] == 0
    assert record["phAvg"] is None
    assert record["feedUsedKg"] == 1.0
    reasons = [record.reason for record in caplog.records if record.name == "services.backfill"]
    assert reasons.count("invalid numeric value") == 5


def test_logged_dates_come_from_archive_listing(driver: BackfillDriver, archive) -> None:
    archive.put_object(feed_log_key(OWNER, date(2025, 1, 20)), b"timestamp,amount_kg\n")
    archive.put_object(f"{OWNER}/readings/notes.csv", b"")
    archive.put_object(reading_log_key("owner-2", date(2025, 1, 16)), b"")

    assert driver.logged_dates(OWNER, date(2025, 1, 1), date(2025, 1, 31)) == [
        date(2025, 1, 15),
        date(2025, 1, 20),
    ]
    assert driver.logged_dates(OWNER, date(2025, 1, 16), date(2025, 1, 19)) == []
