"""Pydantic schemas for aggregation output and transfer reports."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TransferStrategy(str, Enum):
    """How matched records are written into the destination collection."""

    insert = "insert"
    upsert = "upsert"


class AggregationEngine(str, Enum):
    """Where the hourly aggregation is evaluated."""

    server = "server"
    local = "local"


class OutputMode(str, Enum):
    console = "console"
    csv = "csv"


class AggregateRow(BaseModel):
    """Hourly averages for one local-time bucket.

    Validates the documents produced by the ``$group`` stage, whose key is ``_id``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    bucket: str = Field(..., alias="_id", pattern=r"^\d{4}-\d{2}-\d{2} \d{2}:00:00$")
    avg_temperature: Optional[float] = Field(default=None, alias="avgTemperature")
    avg_humidity: Optional[float] = Field(default=None, alias="avgHumidity")


class TransferResult(BaseModel):
    """Outcome of a range transfer."""

    strategy: TransferStrategy
    matched: int = Field(..., ge=0)
    written: int = Field(..., ge=0)
