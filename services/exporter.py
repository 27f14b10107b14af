"""Report selection and CSV rendering for downloads."""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from app.schemas import ExportFormat, ReportLevel
from datastore.document_store import (
    DAILY_REPORTS,
    MONTHLY_REPORTS,
    WEEKLY_REPORTS,
    AggregationStore,
    Document,
)
from errors import InvalidFormat
from services.hourly import coerce_reading
from services.quality import classify_water_quality
from services.timekeys import (
    as_utc,
    month_key,
    parse_day_key,
    parse_iso_week_key,
    parse_month_key,
    week_overlaps_month,
)

_YEAR_PATTERN = re.compile(r"\d{4}", re.ASCII)
_MISSING = "--"


@dataclass(frozen=True)
class ExportLayout:
    collection: str
    key_heading: str
    coverage_field: str
    coverage_heading: str


EXPORT_LAYOUT: Dict[ReportLevel, ExportLayout] = {
    ReportLevel.daily: ExportLayout(DAILY_REPORTS, "Date", "coverageHours", "Coverage Hours"),
    ReportLevel.weekly: ExportLayout(WEEKLY_REPORTS, "Week", "coverageDays", "Coverage Days"),
    ReportLevel.monthly: ExportLayout(MONTHLY_REPORTS, "Month", "coverageDays", "Coverage Days"),
}


def _real(document: Optional[Document]) -> bool:
    return document is not None and document.get("isSeed") is not True


def _single(store: AggregationStore, owner_id: str, collection: str, key: str) -> List[Document]:
    document = store.get_document(owner_id, collection, key)
    return [dict(document, _key=key)] if _real(document) else []


def select_reports(
    store: AggregationStore,
    owner_id: str,
    level: ReportLevel,
    *,
    day: Optional[str] = None,
    week: Optional[str] = None,
    month: Optional[str] = None,
    year: Optional[str] = None,
    today: Optional[date] = None,
) -> tuple[str, List[Document]]:
    """Return the filter label and the matching real reports, sorted by key.

    Daily reports filter by ``day`` or ``month``; weekly by ``week`` or the
    weeks overlapping ``month``; monthly by ``month`` or ``year``. Without a
    filter the current month (current year for monthly reports) is used.
    """
    today = today or as_utc().date()
    collection = EXPORT_LAYOUT[level].collection

    if level is ReportLevel.daily and day:
        parse_day_key(day)
        return day, _single(store, owner_id, collection, day)
    if level is ReportLevel.weekly and week:
        parse_iso_week_key(week)
        return week, _single(store, owner_id, collection, week)
    if level is ReportLevel.monthly and month:
        parse_month_key(month)
        return month, _single(store, owner_id, collection, month)

    if level is ReportLevel.monthly:
        label = year or str(today.year)
        if not _YEAR_PATTERN.fullmatch(label):
            raise InvalidFormat(f"Invalid year format: {label!r}. Expected YYYY")

        def matches(key: str) -> bool:
            return key.startswith(f"{label}-")

    else:
        label = month or month_key(today)
        parse_month_key(label)

        def matches(key: str) -> bool:
            if level is ReportLevel.daily:
                return key.startswith(f"{label}-")
            try:
                return week_overlaps_month(key, label)
            except InvalidFormat:
                return False

    reports = [
        dict(document, _key=key)
        for key, document in store.list_documents(owner_id, collection)
        if _real(document) and matches(key)
    ]
    reports.sort(key=lambda report: report["_key"])
    return label, reports


def _fmt(value: Optional[float], digits: int) -> str:
    return _MISSING if value is None else f"{value:.{digits}f}"


def render_csv(level: ReportLevel, reports: List[Document]) -> str:
    layout = EXPORT_LAYOUT[level]
    buffer = io.StringIO()
    buffer.write("\ufeff")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(
        [
            layout.key_heading,
            "Avg Temperature (°C)",
            "Avg pH",
            "Total Feed (kg)",
            layout.coverage_heading,
            "Water Quality",
        ]
    )
    for report in reports:
        temperature = coerce_reading(report.get("avgTemperature"))
        ph = coerce_reading(report.get("avgPh"))
        feed = coerce_reading(report.get("totalFeedKg"))
        quality = classify_water_quality(temperature, ph, 0)
        writer.writerow(
            [
                report.get("_key", ""),
                _fmt(temperature, 1),
                _fmt(ph, 2),
                _fmt(feed, 1),
                report.get(layout.coverage_field) or 0,
                quality.label,
            ]
        )
    return buffer.getvalue()


def render(level: ReportLevel, reports: List[Document], fmt: ExportFormat) -> str:
    if fmt is ExportFormat.csv:
        return render_csv(level, reports)
    raise NotImplementedError(f"{fmt.value} export is not available.")


def export_filename(level: ReportLevel, label: str, today: date, fmt: ExportFormat) -> str:
    extension = {"csv": "csv", "pdf": "pdf", "word": "docx"}[fmt.value]
    return f"{level.value}_report_{label}_{today.isoformat()}.{extension}"
