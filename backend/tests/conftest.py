"""Shared fakes for the telemetry test suite."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from app.db.live_data import LiveDataError

FIXED_NOW = datetime(2026, 2, 22, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock. Call it to read the current time."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> None:
        self.now = self.now + timedelta(milliseconds=ms)


class FakeLiveData:
    """In-memory stand-in for LiveDataClient.

    ``nodes`` maps a path to the value the database would return.
    Paths listed in ``failing`` raise LiveDataError. Every call is
    recorded in ``calls`` as (method, path, limit).
    """

    def __init__(self, nodes: Optional[dict[str, Any]] = None) -> None:
        self.nodes: dict[str, Any] = dict(nodes or {})
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str, Optional[int]]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, method: str, path: str, limit: Optional[int] = None) -> None:
        self.calls.append((method, path, limit))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        # Yield so concurrent reads overlap
        await asyncio.sleep(0)
        self.in_flight -= 1
        if path in self.failing:
            raise LiveDataError(path, "connection refused")

    async def read(self, path: str) -> Optional[Any]:
        await self._enter("read", path)
        return self.nodes.get(path)

    async def read_last(self, path: str, limit: int) -> Optional[dict[str, Any]]:
        await self._enter("read_last", path, limit)
        data = self.nodes.get(path)
        if not data:
            return None
        keys = sorted(data)[-limit:]
        return {key: data[key] for key in keys}

    async def list_keys(self, path: str = "") -> list[str]:
        await self._enter("list_keys", path)
        return sorted(self.nodes)

    def reads_of(self, path: str) -> int:
        return sum(1 for _, p, _ in self.calls if p == path)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def live_data() -> FakeLiveData:
    return FakeLiveData()
