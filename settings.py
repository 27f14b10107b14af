from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_PATH_ENV = "REPORT_STORE_PATH"
_ARCHIVE_ROOT_ENV = "LOG_ARCHIVE_ROOT"
_WORKER_COUNT_ENV = "JOB_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_CRON_SECRET_ENV = "CRON_SECRET"
_OWNER_TOKENS_ENV = "OWNER_TOKENS"
_SOURCE_TAG_ENV = "REPORT_SOURCE_TAG"


@dataclass(frozen=True)
class Settings:
    store_path: Optional[str]
    archive_root: Optional[str]
    job_workers: int
    log_level: str
    cron_secret: Optional[str]
    owner_tokens: str
    source_tag: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/report_store.json"),
        archive_root=_read_optional_env(_ARCHIVE_ROOT_ENV, "./tmp/log_archive"),
        job_workers=_read_worker_count(4),
        log_level=_read_log_level("INFO"),
        cron_secret=_read_optional_env(_CRON_SECRET_ENV, None),
        owner_tokens=_read_str_env(_OWNER_TOKENS_ENV, ""),
        source_tag=_read_str_env(_SOURCE_TAG_ENV, "py-cron"),
    )
