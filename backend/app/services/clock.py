"""
Clock helpers shared by the telemetry services.

Services take a ``Clock`` (a zero-argument callable returning an aware
UTC datetime) so tests can pin or advance time without sleeping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Union

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def parse_device_timestamp(value: Union[int, float, str]) -> datetime:
    """Parse a device timestamp (epoch milliseconds or ISO string).

    Raises ValueError if the value cannot be interpreted.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
