from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple

import httpx
import typer

from cli.config import CLIConfig

_FILENAME_PATTERN = re.compile(r'filename="([^"]+)"')


class ApiClient:
    """Minimal HTTP client for the report aggregator service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def trigger(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST to a cron endpoint and return the JSON summary."""
        if not self._config.cron_secret:
            raise typer.BadParameter("A cron secret is required (--secret or CRON_SECRET).")
        try:
            response = self._client.post(
                f"/cron/{path}",
                params={key: value for key, value in (params or {}).items() if value},
                headers={"X-Cron-Secret": self._config.cron_secret},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def record_feed(self, amount_kg: float) -> Dict[str, Any]:
        """Record a feed event for the token's owner and return the hour record."""
        if not self._config.token:
            raise typer.BadParameter("An API token is required (--token or API_TOKEN).")
        try:
            response = self._client.post(
                "/feed",
                params={"amount_kg": amount_kg},
                headers={"Authorization": f"Bearer {self._config.token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def export(self, level: str, params: Dict[str, Optional[str]]) -> Tuple[str, bytes]:
        """Download an export and return ``(filename, content)``."""
        if not self._config.token:
            raise typer.BadParameter("An API token is required (--token or API_TOKEN).")
        try:
            response = self._client.get(
                f"/export/{level}",
                params={key: value for key, value in params.items() if value},
                headers={"Authorization": f"Bearer {self._config.token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        match = _FILENAME_PATTERN.search(response.headers.get("content-disposition", ""))
        filename = match.group(1) if match else f"{level}_report.csv"
        return filename, response.content

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
