"""Window length units for the request quota."""

from __future__ import annotations

from enum import StrEnum

_UNIT_SECONDS = {
    "milliseconds": 0.001,
    "seconds": 1.0,
    "minutes": 60.0,
    "hours": 3600.0,
    "days": 86400.0,
}

_ALIASES = {
    "ms": "milliseconds",
    "millisecond": "milliseconds",
    "s": "seconds",
    "sec": "seconds",
    "second": "seconds",
    "m": "minutes",
    "min": "minutes",
    "minute": "minutes",
    "h": "hours",
    "hour": "hours",
    "d": "days",
    "day": "days",
}


class TimeUnit(StrEnum):
    """Unit whose single length is one quota window."""

    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    @property
    def seconds(self) -> float:
        return _UNIT_SECONDS[self.value]


def parse_time_unit(raw: object) -> TimeUnit:
    """Parse a unit name or alias into a `TimeUnit`."""
    if isinstance(raw, TimeUnit):
        return raw
    value = str(raw).strip().lower()
    value = _ALIASES.get(value, value)
    try:
        return TimeUnit(value)
    except ValueError as exc:
        raise ValueError(f"unknown time unit: {raw!r}") from exc
