from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_backfill, render_feed, render_summary


class RollupTarget(str, Enum):
    day = "day"
    week = "week"
    month = "month"


class ExportLevel(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


_ROLLUP_ENDPOINTS = {
    RollupTarget.day: ("generate-daily", "date"),
    RollupTarget.week: ("generate-weekly", "week"),
    RollupTarget.month: ("generate-monthly", "month"),
}


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Trigger rollups, backfills and exports on the pond report service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    secret: Optional[str] = typer.Option(
        None,
        "--secret",
        help="Cron secret for scheduler endpoints (defaults to CRON_SECRET env).",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="Owner bearer token for exports (defaults to API_TOKEN env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, cron_secret=secret, token=token, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("sample")
def sample_command(ctx: typer.Context) -> None:
    """Fold current sensor readings into every owner's hour record."""
    state = _get_state(ctx)
    payload = state.client.trigger("sample-hourly")
    render_summary("Hourly Sample", payload)


@app.command("seed")
def seed_command(ctx: typer.Context) -> None:
    """Create placeholder documents for owners that have no data yet."""
    state = _get_state(ctx)
    payload = state.client.trigger("seed")
    render_summary("Seed", payload)


@app.command("rollup")
def rollup_command(
    ctx: typer.Context,
    target: RollupTarget = typer.Argument(..., help="Report level to generate."),
    period: Optional[str] = typer.Option(
        None,
        "--period",
        "-p",
        help="Period key (YYYY-MM-DD, YYYY-Www or YYYY-MM); defaults to the previous period.",
    ),
) -> None:
    """Generate reports for one period across all owners."""
    state = _get_state(ctx)
    path, param = _ROLLUP_ENDPOINTS[target]
    payload = state.client.trigger(path, {param: period} if period else None)
    render_summary(f"{target.value.capitalize()} Rollup", payload)


@app.command("backfill")
def backfill_command(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owner whose history should be rebuilt."),
    start: str = typer.Option(..., "--start", help="First date (YYYY-MM-DD)."),
    end: str = typer.Option(..., "--end", help="Last date (YYYY-MM-DD)."),
) -> None:
    """Rebuild hour records from archived logs and replay every rollup."""
    state = _get_state(ctx)
    typer.echo(f"Backfilling {owner} from {start} to {end} ...")
    payload = state.client.trigger("backfill", {"owner": owner, "start": start, "end": end})
    render_backfill(payload)


@app.command("feed")
def feed_command(
    ctx: typer.Context,
    amount_kg: float = typer.Argument(..., help="Feed amount in kilograms."),
) -> None:
    """Record a feed event in the current hour for the token's owner."""
    state = _get_state(ctx)
    payload = state.client.record_feed(amount_kg)
    render_feed(payload)


@app.command("export")
def export_command(
    ctx: typer.Context,
    level: ExportLevel = typer.Argument(..., help="Report level to export."),
    date: Optional[str] = typer.Option(None, "--date", help="Single day (daily only)."),
    week: Optional[str] = typer.Option(None, "--week", help="Single ISO week (weekly only)."),
    month: Optional[str] = typer.Option(None, "--month", help="Month filter (YYYY-MM)."),
    year: Optional[str] = typer.Option(None, "--year", help="Year filter (monthly only)."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", dir_okay=False, help="Where to write the CSV."
    ),
) -> None:
    """Download a CSV export of the authenticated owner's reports."""
    state = _get_state(ctx)
    filename, content = state.client.export(
        level.value,
        {"format": "csv", "date": date, "week": week, "month": month, "year": year},
    )
    target = output or Path(filename)
    target.write_bytes(content)
    typer.secho(f"Saved {target}", fg=typer.colors.GREEN)
