from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 60.0

_BASE_URL_ENV = "API_BASE_URL"
_CRON_SECRET_ENV = "CRON_SECRET"
_TOKEN_ENV = "API_TOKEN"
_TIMEOUT_ENV = "CLI_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    cron_secret: Optional[str] = None
    token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def load_config(
    base_url: Optional[str] = None,
    cron_secret: Optional[str] = None,
    token: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    return CLIConfig(
        base_url=url.rstrip("/"),
        cron_secret=cron_secret or _read_optional(os.getenv(_CRON_SECRET_ENV)),
        token=token or _read_optional(os.getenv(_TOKEN_ENV)),
        timeout=timeout,
    )
