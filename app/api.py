"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import date
from typing import Callable, Dict, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.auth import require_cron_secret, require_owner
from app.schemas import (
    BackfillReport,
    BatchSummary,
    DailyReport,
    ExportFormat,
    HourRecord,
    MonthlyReport,
    ReportBase,
    ReportLevel,
    WeeklyReport,
)
from errors import InvalidFormat, StoreUnavailable
from services import exporter
from services.jobs import ReportJobs, build_default_jobs
from services.timekeys import as_utc, parse_day_key, parse_iso_week_key, parse_month_key

router = APIRouter()
cron_router = APIRouter(prefix="/cron", dependencies=[Depends(require_cron_secret)])

T = TypeVar("T")

_REPORT_MODELS: Dict[ReportLevel, Type[ReportBase]] = {
    ReportLevel.daily: DailyReport,
    ReportLevel.weekly: WeeklyReport,
    ReportLevel.monthly: MonthlyReport,
}

_KEY_PARSERS: Dict[ReportLevel, Callable[[str], date]] = {
    ReportLevel.daily: parse_day_key,
    ReportLevel.weekly: parse_iso_week_key,
    ReportLevel.monthly: parse_month_key,
}


def get_jobs() -> ReportJobs:
    return build_default_jobs()


def _guarded(call: Callable[[], T]) -> T:
    try:
        return call()
    except InvalidFormat as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc


@cron_router.post(
    "/sample-hourly",
    response_model=BatchSummary,
    summary="Fold current sensor readings into each owner's hour record.",
)
def sample_hourly(jobs: ReportJobs = Depends(get_jobs)) -> BatchSummary:
    return _guarded(jobs.sample_all)


@cron_router.post(
    "/generate-daily",
    response_model=BatchSummary,
    summary="Roll hour records up into daily reports (default: yesterday).",
)
def generate_daily(
    date_key: Optional[str] = Query(default=None, alias="date", description="YYYY-MM-DD"),
    jobs: ReportJobs = Depends(get_jobs),
) -> BatchSummary:
    return _guarded(lambda: jobs.rollup_day(date_key))


@cron_router.post(
    "/generate-weekly",
    response_model=BatchSummary,
    summary="Roll daily reports up into weekly reports (default: last ISO week).",
)
def generate_weekly(
    week: Optional[str] = Query(default=None, description="YYYY-Www"),
    jobs: ReportJobs = Depends(get_jobs),
) -> BatchSummary:
    return _guarded(lambda: jobs.rollup_week(week))


@cron_router.post(
    "/generate-monthly",
    response_model=BatchSummary,
    summary="Roll daily reports up into monthly reports (default: last month).",
)
def generate_monthly(
    month: Optional[str] = Query(default=None, description="YYYY-MM"),
    jobs: ReportJobs = Depends(get_jobs),
) -> BatchSummary:
    return _guarded(lambda: jobs.rollup_month(month))


@cron_router.post(
    "/seed",
    response_model=BatchSummary,
    summary="Create placeholder documents for owners without data.",
)
def seed_current(jobs: ReportJobs = Depends(get_jobs)) -> BatchSummary:
    return _guarded(jobs.seed_all)


@cron_router.post(
    "/backfill",
    response_model=BackfillReport,
    summary="Rebuild one owner's hour records from archived logs and replay rollups.",
)
def backfill(
    owner: str = Query(..., min_length=1),
    start: str = Query(..., description="YYYY-MM-DD"),
    end: str = Query(..., description="YYYY-MM-DD"),
    jobs: ReportJobs = Depends(get_jobs),
) -> BackfillReport:
    def run() -> BackfillReport:
        try:
            return jobs.backfill(owner, parse_day_key(start), parse_day_key(end))
        except InvalidFormat:
            raise
        except ValueError as exc:
            raise InvalidFormat(str(exc)) from exc

    return _guarded(run)


@router.post(
    "/feed",
    summary="Record a feed event in the authenticated owner's current hour.",
)
def record_feed(
    amount_kg: float = Query(..., description="Feed amount in kilograms."),
    owner_id: str = Depends(require_owner),
    jobs: ReportJobs = Depends(get_jobs),
) -> dict:
    def run() -> dict:
        try:
            return jobs.record_feed(owner_id, amount_kg)
        except ValueError as exc:
            raise InvalidFormat(str(exc)) from exc

    document = _guarded(run)
    return HourRecord.model_validate(document).to_document()


@router.get(
    "/reports/{level}/{key}",
    summary="Fetch a single report for the authenticated owner.",
)
def get_report(
    level: ReportLevel,
    key: str,
    owner_id: str = Depends(require_owner),
    jobs: ReportJobs = Depends(get_jobs),
) -> dict:
    _guarded(lambda: _KEY_PARSERS[level](key))
    collection = exporter.EXPORT_LAYOUT[level].collection
    document = _guarded(lambda: jobs.store.get_document(owner_id, collection, key))
    if document is None or document.get("isSeed") is True:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No {level.value} report for {key!r}.",
        )
    return _REPORT_MODELS[level].model_validate(document).to_document()


@router.get(
    "/export/{level}",
    summary="Download reports for the authenticated owner.",
)
def export_reports(
    level: ReportLevel,
    export_format: str = Query(default="csv", alias="format"),
    date_key: Optional[str] = Query(default=None, alias="date"),
    week: Optional[str] = Query(default=None),
    month: Optional[str] = Query(default=None),
    year: Optional[str] = Query(default=None),
    owner_id: str = Depends(require_owner),
    jobs: ReportJobs = Depends(get_jobs),
) -> Response:
    try:
        fmt = ExportFormat(export_format.lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid format. Must be: csv, pdf, or word",
        ) from exc

    label, reports = _guarded(
        lambda: exporter.select_reports(
            jobs.store, owner_id, level, day=date_key, week=week, month=month, year=year
        )
    )
    try:
        body = exporter.render(level, reports, fmt)
    except NotImplementedError as exc:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail=str(exc),
        ) from exc

    filename = exporter.export_filename(level, label, as_utc().date(), fmt)
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
