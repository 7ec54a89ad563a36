"""Hourly aggregation of temperature/humidity readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from errors import DecodeError, QueryError
from models.records import DateRange, SensorReading, coerce_timestamp
from models.schemas import AggregateRow, AggregationEngine
from settings import LOCAL_TIMEZONE

logger = logging.getLogger(__name__)

HOUR_BUCKET_FORMAT = "%Y-%m-%d %H:00:00"


def hour_bucket(moment: datetime, zone: tzinfo) -> str:
    """Format the local wall-clock hour of ``moment`` in ``zone``."""
    return moment.astimezone(zone).strftime(HOUR_BUCKET_FORMAT)


def round_measurement(value: Any) -> Optional[float]:
    """Round like ``$round: [value, 2]``; missing values stay ``None``."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Measurement {value!r} is not numeric.")
    return round(float(value), 2)


def build_hourly_pipeline(date_range: DateRange, timezone_name: str = LOCAL_TIMEZONE) -> List[Dict[str, Any]]:
    """Server-side equivalent of :meth:`HourlyAggregator.aggregate`."""
    return [
        {"$match": date_range.as_filter()},
        {
            "$addFields": {
                "localHour": {
                    "$dateToString": {
                        "format": HOUR_BUCKET_FORMAT,
                        "date": {"$toDate": "$updatedAt"},
                        "timezone": timezone_name,
                    }
                }
            }
        },
        {
            "$group": {
                "_id": "$localHour",
                "avgHumidity": {"$avg": {"$round": ["$humidity", 2]}},
                "avgTemperature": {"$avg": {"$round": ["$temperature", 2]}},
            }
        },
        {"$sort": {"_id": 1}},
    ]


@dataclass
class _BucketTotals:
    temperatures: List[float] = field(default_factory=list)
    humidities: List[float] = field(default_factory=list)


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


class HourlyAggregator:
    """Groups readings into local-hour buckets with averages of rounded values."""

    def __init__(self, timezone_name: str = LOCAL_TIMEZONE) -> None:
        self.timezone_name = timezone_name
        self.zone = ZoneInfo(timezone_name)

    def decode_reading(self, document: Mapping[str, Any]) -> SensorReading:
        try:
            updated_at = coerce_timestamp(document["updatedAt"])
        except KeyError as exc:
            raise DecodeError(f"Record {document.get('_id')!r} has no updatedAt field.") from exc
        except ValueError as exc:
            raise DecodeError(f"Record {document.get('_id')!r}: {exc}") from exc
        return SensorReading(
            record_id=document.get("_id"),
            updated_at=updated_at,
            temperature=round_measurement(document.get("temperature")),
            humidity=round_measurement(document.get("humidity")),
        )

    def aggregate(self, readings: Iterable[SensorReading]) -> List[AggregateRow]:
        """Group, round each measurement to 2 decimals, average and sort in process."""
        buckets: Dict[str, _BucketTotals] = {}
        for reading in readings:
            key = hour_bucket(reading.updated_at, self.zone)
            totals = buckets.setdefault(key, _BucketTotals())
            temperature = round_measurement(reading.temperature)
            humidity = round_measurement(reading.humidity)
            if temperature is not None:
                totals.temperatures.append(temperature)
            if humidity is not None:
                totals.humidities.append(humidity)

        return [
            AggregateRow(
                bucket=key,
                avg_temperature=_mean(buckets[key].temperatures),
                avg_humidity=_mean(buckets[key].humidities),
            )
            for key in sorted(buckets)
        ]

    def run(
        self,
        collection: Collection,
        date_range: DateRange,
        engine: AggregationEngine = AggregationEngine.server,
    ) -> List[AggregateRow]:
        if engine is AggregationEngine.local:
            rows = self._run_local(collection, date_range)
        else:
            rows = self._run_server(collection, date_range)
        logger.info(
            "Hourly aggregation complete",
            extra={
                "engine": engine,
                "row_count": len(rows),
                "start": date_range.start,
                "end": date_range.end,
            },
        )
        return rows

    def _run_server(self, collection: Collection, date_range: DateRange) -> List[AggregateRow]:
        pipeline = build_hourly_pipeline(date_range, self.timezone_name)
        try:
            with collection.aggregate(pipeline) as cursor:
                documents = list(cursor)
        except PyMongoError as exc:
            raise QueryError(f"Aggregation failed: {exc}") from exc

        rows: List[AggregateRow] = []
        for document in documents:
            try:
                rows.append(AggregateRow.model_validate(document))
            except ValidationError as exc:
                raise DecodeError(f"Unexpected aggregation document {document!r}: {exc}") from exc
        return rows

    def _run_local(self, collection: Collection, date_range: DateRange) -> List[AggregateRow]:
        try:
            documents = list(collection.find(date_range.as_filter()))
        except PyMongoError as exc:
            raise QueryError(f"Failed to read records: {exc}") from exc
        return self.aggregate(self.decode_reading(document) for document in documents)
