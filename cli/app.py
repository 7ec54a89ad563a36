from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional
from zoneinfo import ZoneInfo

import typer

from cli.render import render_rows, render_transfer
from datastore.mongo import get_collection, open_client
from errors import SensorExportError
from logging_config import configure_logging
from models.records import DateRange, coerce_timestamp
from models.schemas import AggregationEngine, OutputMode, TransferStrategy
from services.aggregator import HourlyAggregator
from services.export import export_csv
from services.transfer import RangeTransfer
from settings import LOCAL_TIMEZONE, Settings, load_settings

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_START = "2020-05-01T00:00:00Z"
DEFAULT_TRANSFER_END = "2020-09-01T00:00:00Z"


@dataclass
class CLIState:
    settings: Settings


app = typer.Typer(
    help="Transfer and aggregate temperature/humidity records stored in MongoDB.",
    context_settings={"help_option_names": ["-h", "--help"]},
    no_args_is_help=True,
)


@contextmanager
def fatal_on_error() -> Iterator[None]:
    """Log any run failure and terminate with a non-zero exit status."""
    try:
        yield
    except SensorExportError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1) from exc


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho(
            "Settings were not loaded; run through the sensor-export entry point.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)
    return state


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_bound(value: str, name: str) -> datetime:
    try:
        return coerce_timestamp(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=name) from exc


@app.callback()
def main(
    ctx: typer.Context,
    env_file: Optional[List[Path]] = typer.Option(
        None,
        "--env-file",
        help="Env file to load; repeat to layer overrides (defaults to .env then .env.local).",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    with fatal_on_error():
        settings = load_settings(env_files=env_file or None)
    configure_logging(log_level.upper() if log_level else settings.log_level)
    ctx.obj = CLIState(settings=settings)


@app.command("transfer")
def transfer_command(
    ctx: typer.Context,
    start: str = typer.Option(DEFAULT_TRANSFER_START, "--start", help="Inclusive ISO-8601 start (UTC if naive)."),
    end: str = typer.Option(DEFAULT_TRANSFER_END, "--end", help="Exclusive ISO-8601 end (UTC if naive)."),
    strategy: TransferStrategy = typer.Option(
        TransferStrategy.upsert,
        "--strategy",
        case_sensitive=False,
        help="Plain insert, or unordered upsert keyed on _id.",
    ),
) -> None:
    """Copy records whose updatedAt falls in [start, end) from source to destination."""
    state = _get_state(ctx)
    start_at = _parse_bound(start, "--start")
    end_at = _parse_bound(end, "--end")
    try:
        date_range = DateRange(start=start_at, end=end_at)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--start/--end") from exc

    with fatal_on_error():
        source_uri = state.settings.require("source_mongo_uri")
        dest_uri = state.settings.require("dest_mongo_uri")
        with open_client(source_uri, label="source") as source_client, open_client(
            dest_uri, label="destination"
        ) as dest_client:
            transfer = RangeTransfer(get_collection(source_client), get_collection(dest_client))
            result = transfer.run(date_range, strategy=strategy)
    render_transfer(result)


@app.command("hourly")
def hourly_command(
    ctx: typer.Context,
    day: Optional[datetime] = typer.Option(
        None,
        "--day",
        formats=["%Y-%m-%d"],
        help=f"Local calendar day in {LOCAL_TIMEZONE} to aggregate (defaults to yesterday).",
    ),
    output: OutputMode = typer.Option(OutputMode.csv, "--output", case_sensitive=False),
    output_dir: Path = typer.Option(
        Path("."),
        "--output-dir",
        file_okay=False,
        help="Directory for the measurements CSV.",
    ),
    engine: AggregationEngine = typer.Option(
        AggregationEngine.server,
        "--engine",
        case_sensitive=False,
        help="Run the aggregation pipeline on the server or in process.",
    ),
) -> None:
    """Average temperature and humidity per local hour for one day."""
    state = _get_state(ctx)
    zone = ZoneInfo(LOCAL_TIMEZONE)
    now = _now()
    date_range = DateRange.for_day(day.date(), zone) if day else DateRange.yesterday(now, zone)
    aggregator = HourlyAggregator(LOCAL_TIMEZONE)

    with fatal_on_error():
        uri = state.settings.require("mongo_uri")
        with open_client(uri) as client:
            rows = aggregator.run(get_collection(client), date_range, engine=engine)

        if output is OutputMode.console:
            render_rows(rows)
            return

        path = export_csv(rows, run_date=now.astimezone(zone).date(), directory=output_dir)
    typer.echo(f"Data successfully written to {path}")
