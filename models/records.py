"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional


@dataclass(slots=True)
class SensorReading:
    """A single temperature/humidity reading decoded from a ``temphums`` document."""

    record_id: Any
    updated_at: datetime
    temperature: Optional[float]
    humidity: Optional[float]


@dataclass(frozen=True)
class DateRange:
    """Half-open interval ``[start, end)`` of timezone-aware timestamps."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("DateRange bounds must be timezone-aware.")
        if self.start >= self.end:
            raise ValueError(
                f"DateRange start {self.start.isoformat()} must precede end {self.end.isoformat()}."
            )

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def as_filter(self, field: str = "updatedAt") -> dict[str, Any]:
        return {field: {"$gte": self.start, "$lt": self.end}}

    @classmethod
    def for_day(cls, day: date, zone: tzinfo) -> "DateRange":
        """Range covering one local calendar day in ``zone``, expressed in UTC.

        Both bounds are local midnights, so DST transition days span 23 or 25 hours.
        """
        start = datetime.combine(day, time.min, tzinfo=zone)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
        return cls(start=start.astimezone(timezone.utc), end=end.astimezone(timezone.utc))

    @classmethod
    def yesterday(cls, now: datetime, zone: tzinfo) -> "DateRange":
        local_today = now.astimezone(zone).date()
        return cls.for_day(local_today - timedelta(days=1), zone)


def coerce_timestamp(value: Any) -> datetime:
    """Convert a stored ``updatedAt`` value to an aware UTC datetime.

    Accepts what ``$toDate`` accepts: datetimes (naive ones are UTC, as pymongo
    returns them), ISO-8601 strings and epoch milliseconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to a timestamp.")

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError(f"Epoch milliseconds {value!r} out of range: {exc}") from exc
    elif isinstance(value, str):
        candidate = value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp format: {value!r}") from exc
    else:
        raise ValueError(f"Cannot convert {type(value).__name__} to a timestamp.")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

