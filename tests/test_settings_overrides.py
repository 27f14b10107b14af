from __future__ import annotations

from typing import Iterable

from datastore.document_store import build_default_store
from services.jobs import build_default_jobs
from settings import get_settings
from storage.log_archive import build_default_archive


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    archive_root = tmp_path / "logs"
    store_path = tmp_path / "reports.json"

    monkeypatch.setenv("LOG_ARCHIVE_ROOT", str(archive_root))
    monkeypatch.setenv("REPORT_STORE_PATH", str(store_path))
    monkeypatch.setenv("JOB_WORKER_COUNT", "2")
    monkeypatch.setenv("REPORT_SOURCE_TAG", "nightly")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    caches = (
        get_settings,
        build_default_archive,
        build_default_store,
        build_default_jobs,
    )
    _clear_caches(caches)

    archive = build_default_archive()
    store = build_default_store()
    jobs = build_default_jobs()

    try:
        assert archive.root_path == archive_root
        assert store.persistence_path == store_path
        assert jobs.store is store
        assert jobs.archive is archive
        assert jobs.executor._max_workers == 2
        assert jobs.engine.source == "nightly"
        assert get_settings().log_level == "DEBUG"
    finally:
        jobs.shutdown()
        _clear_caches(caches)


def test_invalid_worker_count_falls_back_to_default(monkeypatch) -> None:
    monkeypatch.setenv("JOB_WORKER_COUNT", "zero")
    monkeypatch.setenv("CRON_SECRET", "   ")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.job_workers == 4
        assert settings.cron_secret is None
    finally:
        get_settings.cache_clear()
