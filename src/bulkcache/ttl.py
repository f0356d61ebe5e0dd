"""
TTL / expiration policy.

A client carries one TTL, fixed when it is enabled and applied to every
``put`` and ``put_if_absent``. A configured TTL of ``0`` means the entries
never expire and is stored as ``NO_EXPIRATION`` (``-1``), which keeps
"never expires" distinct from "already expired".

TTLs can be given as seconds, a ``timedelta`` or a time period string such
as ``"0 secs"``, ``"90 seconds"`` or ``"5 mins"``. Fractional seconds are
truncated, except that a positive TTL under one second becomes one second:
only an exact zero means "never expires".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta

from bulkcache.errors import InvalidConfigError

NO_EXPIRATION = -1

_TIME_PERIOD = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]+)\s*$")

_UNIT_SECONDS: dict[str, float] = {}
for _names, _factor in (
    (("ns", "nano", "nanos", "nanosecond", "nanoseconds"), 1e-9),
    (("ms", "milli", "millis", "msec", "msecs", "millisecond", "milliseconds"), 1e-3),
    (("s", "sec", "secs", "second", "seconds"), 1.0),
    (("m", "min", "mins", "minute", "minutes"), 60.0),
    (("h", "hr", "hrs", "hour", "hours"), 3600.0),
    (("d", "day", "days"), 86400.0),
    (("w", "wk", "wks", "week", "weeks"), 604800.0),
):
    for _name in _names:
        _UNIT_SECONDS[_name] = _factor


def _whole_seconds(seconds: float) -> int:
    # Redis TTLs are whole seconds; never round a positive TTL down to 0
    if 0 < seconds < 1:
        return 1
    return int(seconds)


def parse_time_period(text: str) -> int:
    """Parse ``"<number> <unit>"`` into whole seconds.

    >>> parse_time_period("5 mins")
    300
    >>> parse_time_period("0 secs")
    0

    Raises:
        InvalidConfigError: If the text is not a recognized time period.
    """
    match = _TIME_PERIOD.match(text)
    if not match:
        raise InvalidConfigError("ttl", text, f"Invalid time period: {text!r}")
    amount, unit = match.groups()
    factor = _UNIT_SECONDS.get(unit.lower())
    if factor is None:
        raise InvalidConfigError("ttl", text, f"Unknown time unit {unit!r} in {text!r}")
    return _whole_seconds(float(amount) * factor)


@dataclass(frozen=True)
class TtlPolicy:
    """Per-client expiration setting.

    ``seconds`` is either a positive number of seconds or ``NO_EXPIRATION``.
    Build instances with ``from_value`` so that ``0`` is canonicalized.
    """

    seconds: int = NO_EXPIRATION

    @classmethod
    def from_value(cls, value: int | float | timedelta | str | None) -> TtlPolicy:
        if value is None:
            return cls()
        if isinstance(value, timedelta):
            seconds = value.total_seconds()
        elif isinstance(value, str):
            stripped = value.strip()
            seconds = int(stripped) if stripped.isdigit() else parse_time_period(stripped)
        elif isinstance(value, bool):
            raise InvalidConfigError("ttl", value)
        else:
            seconds = float(value)

        if seconds < 0:
            raise InvalidConfigError("ttl", value, f"TTL must be non-negative, got {value!r}")
        if seconds == 0:
            return cls()
        return cls(seconds=_whole_seconds(seconds))

    @property
    def expires(self) -> bool:
        return self.seconds != NO_EXPIRATION

    def __str__(self) -> str:
        return f"{self.seconds}s" if self.expires else "no expiration"


__all__ = [
    "NO_EXPIRATION",
    "TtlPolicy",
    "parse_time_period",
]
