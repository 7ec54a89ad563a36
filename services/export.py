"""CSV export of hourly aggregate rows."""

from __future__ import annotations

import csv
import logging
from datetime import date
from pathlib import Path
from typing import Iterable, Optional, TextIO

from errors import ExportWriteError
from models.schemas import AggregateRow

logger = logging.getLogger(__name__)

CSV_HEADER = ("measurement_date_time", "temperature_F", "humidity_percent")


def format_measurement(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def csv_filename(run_date: date) -> str:
    return f"measurements_{run_date.isoformat()}.csv"


def write_rows(handle: TextIO, rows: Iterable[AggregateRow]) -> int:
    """Write the header and one line per row; returns the number of rows."""
    writer = csv.writer(handle, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    count = 0
    for row in rows:
        writer.writerow(
            [
                row.bucket,
                format_measurement(row.avg_temperature),
                format_measurement(row.avg_humidity),
            ]
        )
        count += 1
    return count


def export_csv(rows: Iterable[AggregateRow], run_date: date, directory: Path = Path(".")) -> Path:
    path = directory / csv_filename(run_date)
    try:
        with path.open("w", newline="", encoding="utf-8") as handle:
            count = write_rows(handle, rows)
    except OSError as exc:
        raise ExportWriteError(f"Failed to write CSV file {path}: {exc}") from exc
    logger.info("CSV export written", extra={"path": str(path), "row_count": count})
    return path
