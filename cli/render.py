from __future__ import annotations

from typing import Iterable

import typer

from models.schemas import AggregateRow, TransferResult
from services.export import format_measurement


def render_rows(rows: Iterable[AggregateRow]) -> None:
    for row in rows:
        typer.echo(
            f"Hour: {row.bucket}, "
            f"Avg Humidity: {format_measurement(row.avg_humidity)}, "
            f"Avg Temperature: {format_measurement(row.avg_temperature)}"
        )


def render_transfer(result: TransferResult) -> None:
    if result.matched == 0:
        typer.echo("No records found in range; 0 records transferred.")
        return
    typer.secho(
        f"Transferred {result.matched} records ({result.strategy.value}, {result.written} written).",
        fg=typer.colors.GREEN,
    )
