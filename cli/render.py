from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_summary(title: str, payload: Dict[str, Any]) -> None:
    echo_heading(title)
    echo_key_values(
        [
            ("period", payload.get("periodKey")),
            ("processed", payload.get("processed")),
            ("skipped", payload.get("skipped")),
            ("errors", payload.get("errors")),
            ("timestamp", payload.get("timestamp")),
        ]
    )
    if payload.get("errors"):
        typer.secho("Some owners failed; see service logs for details.", fg=typer.colors.YELLOW)


def render_backfill(payload: Dict[str, Any]) -> None:
    echo_heading("Backfill Result")
    echo_key_values(
        [
            ("owner", payload.get("ownerId")),
            ("hours_written", payload.get("hoursWritten")),
        ]
    )
    for level in ("days", "weeks", "months"):
        counts = payload.get(level) or {}
        typer.echo(
            f"{level}: processed={counts.get('processed', 0)} skipped={counts.get('skipped', 0)}"
        )


def render_feed(payload: Dict[str, Any]) -> None:
    echo_heading("Feed Recorded")
    echo_key_values(
        [
            ("date", payload.get("date")),
            ("hour", payload.get("hour")),
            ("feed_used_kg", payload.get("feedUsedKg")),
        ]
    )
