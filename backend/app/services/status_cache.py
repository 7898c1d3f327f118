"""
Status Cache
============
Single-entry TTL cache in front of the device connectivity status.

Dashboards poll /status every second or so; the cache keeps that from
turning into one Realtime Database read per poll per client.

Behaviour:
- Hit (entry younger than the TTL): return it, no upstream read.
- Miss or expired: call the pull function and store the result.
- Pull fails: store and return an offline status. The failure is logged,
  never raised, and the offline value is served until it expires.

There is no lock. Concurrent misses may each pull once; all of them
write the same shape, so the last writer wins harmlessly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from app.models.telemetry import DeviceStatus
from app.services.clock import Clock, to_iso, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 2000


@dataclass
class StatusCacheEntry:
    data: DeviceStatus
    stored_at: datetime


def offline_status(now: datetime) -> DeviceStatus:
    return DeviceStatus(wifi=False, gps=False, heartbeat=False, last_update=to_iso(now))


class StatusCache:
    """Caches the result of *pull* for *ttl_ms* milliseconds."""

    def __init__(
        self,
        pull: Callable[[], Awaitable[DeviceStatus]],
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Clock = utc_now,
    ) -> None:
        self._pull = pull
        self._clock = clock
        self.ttl_ms = ttl_ms
        self._entry: Optional[StatusCacheEntry] = None

    @property
    def entry(self) -> Optional[StatusCacheEntry]:
        return self._entry

    def _is_fresh(self, now: datetime) -> bool:
        if self._entry is None:
            return False
        age_ms = (now - self._entry.stored_at).total_seconds() * 1000
        return age_ms < self.ttl_ms

    async def get(self) -> DeviceStatus:
        now = self._clock()
        if self._is_fresh(now):
            logger.debug("Serving cached device status")
            return self._entry.data

        try:
            status = await self._pull()
            self._entry = StatusCacheEntry(data=status, stored_at=now)
        except Exception:
            logger.exception("Device status read failed; serving offline status")
            failed_at = self._clock()
            status = offline_status(failed_at)
            self._entry = StatusCacheEntry(data=status, stored_at=failed_at)

        return status
