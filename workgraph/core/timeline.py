from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Literal, Optional

from workgraph.core.errors import invalid_attribute


DurationUnit = Literal["hours", "days", "weeks"]

_SECS_PER_HOUR = 3600
_SECS_PER_DAY = 24 * _SECS_PER_HOUR
_SECS_PER_WEEK = 7 * _SECS_PER_DAY

_UNIT_SECONDS: dict[str, int] = {
    "hours": _SECS_PER_HOUR,
    "days": _SECS_PER_DAY,
    "weeks": _SECS_PER_WEEK,
}


@dataclass(frozen=True)
class Duration:
    amount: int
    unit: DurationUnit = "hours"

    def __post_init__(self) -> None:
        if self.unit not in _UNIT_SECONDS:
            raise invalid_attribute(f"duration unit must be one of {sorted(_UNIT_SECONDS)}")

    @classmethod
    def between(cls, start: datetime, end: datetime) -> Duration:
        """Express end - start in the coarsest unit that covers it, rounding up.

        Spans longer than a week are counted in weeks, longer than a day in days,
        everything else in hours. A zero span is 0 hours.
        """
        total = int((end - start).total_seconds())
        if total == 0:
            return cls(0, "hours")
        sign = -1 if total < 0 else 1
        secs = abs(total)
        if secs > _SECS_PER_WEEK:
            return cls(sign * math.ceil(secs / _SECS_PER_WEEK), "weeks")
        if secs > _SECS_PER_DAY:
            return cls(sign * math.ceil(secs / _SECS_PER_DAY), "days")
        return cls(sign * math.ceil(secs / _SECS_PER_HOUR), "hours")

    @classmethod
    def parse(cls, text: str) -> Duration:
        """Parse '6h', '3d' or '2w'."""
        raw = text.strip().lower()
        units = {"h": "hours", "d": "days", "w": "weeks"}
        if len(raw) < 2 or raw[-1] not in units or not raw[:-1].isdigit():
            raise invalid_attribute(f"duration must look like 6h, 3d or 2w, got: {text}")
        return cls(int(raw[:-1]), units[raw[-1]])  # type: ignore[arg-type]

    def to_timedelta(self) -> timedelta:
        return timedelta(seconds=self.amount * _UNIT_SECONDS[self.unit])

    def __str__(self) -> str:
        return f"{self.amount} {self.unit}"


@dataclass(frozen=True)
class Timeline:
    """Scheduled interval plus effort estimate. `end` may be left open."""

    start: datetime
    end: Optional[datetime] = None
    estimated_hours: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime):
            raise invalid_attribute("timeline.start must be a datetime")
        if self.end is not None and not isinstance(self.end, datetime):
            raise invalid_attribute("timeline.end must be a datetime")
        # Naive instants are UTC.
        object.__setattr__(self, "start", _as_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", _as_utc(self.end))
        if not isinstance(self.estimated_hours, int) or isinstance(self.estimated_hours, bool):
            raise invalid_attribute("estimated_hours must be an integer")
        if self.estimated_hours < 0:
            raise invalid_attribute("estimated_hours must be non-negative")
        if self.end is not None and self.start > self.end:
            raise invalid_attribute(
                f"timeline start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    @classmethod
    def from_start_end(cls, start: datetime, end: datetime, estimated_hours: int = 0) -> Timeline:
        return cls(start=start, end=end, estimated_hours=estimated_hours)

    @classmethod
    def from_start_duration(
        cls, start: datetime, duration: Duration, estimated_hours: int = 0
    ) -> Timeline:
        return cls(start=start, end=start + duration.to_timedelta(), estimated_hours=estimated_hours)

    @property
    def duration(self) -> Optional[Duration]:
        if self.end is None:
            return None
        return Duration.between(self.start, self.end)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end is not None else None,
            "estimated_hours": self.estimated_hours,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Timeline:
        start = data.get("start")
        if start is None:
            raise invalid_attribute("timeline.start is required")
        end = data.get("end")
        hours = data.get("estimated_hours", 0)
        return cls(
            start=coerce_instant(start),
            end=coerce_instant(end) if end is not None else None,
            estimated_hours=hours,
        )


def parse_instant(text: str) -> datetime:
    """Parse an ISO-8601 date or datetime. Naive values are taken as UTC."""
    try:
        value = datetime.fromisoformat(text.strip())
    except ValueError as e:
        raise invalid_attribute(f"not an ISO-8601 instant: {text}") from e
    return _as_utc(value)


def coerce_instant(value: Any) -> datetime:
    # Unquoted YAML timestamps arrive as date/datetime objects.
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        return parse_instant(value)
    raise invalid_attribute(f"not an ISO-8601 instant: {value!r}")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
