from __future__ import annotations

import csv
import io
from datetime import date

import pytest

from app.schemas import ExportFormat, ReportLevel
from datastore.document_store import DAILY_REPORTS, MONTHLY_REPORTS, WEEKLY_REPORTS, MockDocumentStore
from errors import InvalidFormat
from services.exporter import export_filename, render, render_csv, select_reports

OWNER = "owner-1"
TODAY = date(2025, 1, 20)


@pytest.fixture()
def store() -> MockDocumentStore:
    store = MockDocumentStore()
    daily = {
        "2024-12-31": {"avgTemperature": 23.0, "avgPh": 7.0, "coverageHours": 24},
        "2025-01-15": {"avgTemperature": 25.04, "avgPh": 7.126, "totalFeedKg": 3.5, "coverageHours": 20},
        "2025-01-14": {"avgTemperature": None, "avgPh": 7.2, "coverageHours": 3},
        "2025-01-16": {"avgTemperature": 0.0, "avgPh": 0.0, "coverageHours": 0, "isSeed": True},
    }
    for key, document in daily.items():
        store.set_document_merge(OWNER, DAILY_REPORTS, key, dict(document, date=key))
    for key in ("2025-W01", "2025-W03", "2025-W06", "2024-W52"):
        store.set_document_merge(OWNER, WEEKLY_REPORTS, key, {"week": key, "avgTemperature": 25.0, "coverageDays": 7})
    for key in ("2024-12", "2025-01", "2025-02"):
        store.set_document_merge(OWNER, MONTHLY_REPORTS, key, {"month": key, "avgTemperature": 25.0})
    return store


def _rows(text: str) -> list:
    assert text.startswith("\ufeff")
    return list(csv.reader(io.StringIO(text[1:])))


def test_daily_defaults_to_current_month_and_skips_seeds(store) -> None:
    label, reports = select_reports(store, OWNER, ReportLevel.daily, today=TODAY)

    assert label == "2025-01"
    assert [report["_key"] for report in reports] == ["2025-01-14", "2025-01-15"]


def test_daily_single_date(store) -> None:
    label, reports = select_reports(store, OWNER, ReportLevel.daily, day="2024-12-31", today=TODAY)

    assert label == "2024-12-31"
    assert len(reports) == 1
    assert select_reports(store, OWNER, ReportLevel.daily, day="2025-01-16", today=TODAY)[1] == []


def test_weekly_filters_by_overlapping_month(store) -> None:
    _, reports = select_reports(store, OWNER, ReportLevel.weekly, month="2025-01", today=TODAY)
    assert [report["_key"] for report in reports] == ["2025-W01", "2025-W03"]

    _, december = select_reports(store, OWNER, ReportLevel.weekly, month="2024-12", today=TODAY)
    assert [report["_key"] for report in december] == ["2024-W52", "2025-W01"]


def test_monthly_filters_by_year(store) -> None:
    label, reports = select_reports(store, OWNER, ReportLevel.monthly, today=TODAY)
    assert label == "2025"
    assert [report["_key"] for report in reports] == ["2025-01", "2025-02"]

    _, single = select_reports(store, OWNER, ReportLevel.monthly, month="2024-12", today=TODAY)
    assert [report["_key"] for report in single] == ["2024-12"]


@pytest.mark.parametrize(
    ("level", "filters"),
    [
        (ReportLevel.daily, {"day": "2025-1-5"}),
        (ReportLevel.daily, {"month": "January"}),
        (ReportLevel.weekly, {"week": "2025-W60"}),
        (ReportLevel.monthly, {"year": "25"}),
    ],
)
def test_invalid_filters_raise(store, level, filters) -> None:
    with pytest.raises(InvalidFormat):
        select_reports(store, OWNER, level, today=TODAY, **filters)


def test_render_csv_layout(store) -> None:
    _, reports = select_reports(store, OWNER, ReportLevel.daily, today=TODAY)

    rows = _rows(render_csv(ReportLevel.daily, reports))

    assert rows[0] == [
        "Date",
        "Avg Temperature (°C)",
        "Avg pH",
        "Total Feed (kg)",
        "Coverage Hours",
        "Water Quality",
    ]
    assert rows[1] == ["2025-01-14", "--", "7.20", "--", "3", "Unknown"]
    assert rows[2] == ["2025-01-15", "25.0", "7.13", "3.5", "20", "Good"]


def test_render_csv_quotes_every_field() -> None:
    text = render_csv(ReportLevel.monthly, [{"_key": "2025-01", "avgTemperature": 31.0, "avgPh": 7.0}])

    lines = text[1:].splitlines()
    assert lines[0].startswith('"Month"')
    assert lines[1] == '"2025-01","31.0","7.00","--","0","Fair"'


def test_render_rejects_unsupported_formats() -> None:
    assert render(ReportLevel.weekly, [], ExportFormat.csv).startswith("\ufeff")
    with pytest.raises(NotImplementedError):
        render(ReportLevel.weekly, [], ExportFormat.pdf)
    with pytest.raises(NotImplementedError):
        render(ReportLevel.weekly, [], ExportFormat.word)


def test_export_filename() -> None:
    assert export_filename(ReportLevel.daily, "2025-01", TODAY, ExportFormat.csv) == (
        "daily_report_2025-01_2025-01-20.csv"
    )
    assert export_filename(ReportLevel.monthly, "2025", TODAY, ExportFormat.word).endswith(".docx")
