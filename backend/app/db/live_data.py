"""
Live Data Client
================
Async reader for the Realtime Database the ESP32 tracker writes to.

The device pushes its state under a single root node:

    health-tracker/
        current-status   connectivity + GPS snapshot (overwritten)
        latest-health    pulse sensor snapshot (overwritten)
        gps/             append-only GPS history (push keys)
        heartbeat/       append-only heartbeat history (push keys)

We only ever read. Calls go through the database REST API so that the
status and health snapshots can be fetched concurrently with
asyncio.gather. Every request is bounded by the configured timeout; this
client never retries.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LiveDataError(Exception):
    """Transport failure or non-2xx response from the Realtime Database."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Live data read failed for '{path}': {reason}")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


def _key_order(key: str) -> tuple:
    """Realtime Database $key order: integer keys numerically, then strings."""
    if key.isdigit():
        return (0, int(key), "")
    return (1, 0, key)


class LiveDataClient:
    """Point reads and last-N reads against the Realtime Database REST API."""

    def __init__(
        self,
        base_url: str,
        root: str = "health-tracker",
        auth_token: str = "",
        timeout: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._root = root.strip("/")
        self._auth_token = auth_token
        self._timeout = timeout

    async def read(self, path: str) -> Optional[Any]:
        """Return the value stored at *path*, or None if the node is empty."""
        return await self._get(path, {})

    async def read_last(self, path: str, limit: int) -> Optional[dict[str, Any]]:
        """Return the last *limit* children of *path* keyed by push id.

        Filtered REST queries come back in no particular order, so the
        result is re-sorted by key (push ids sort chronologically).
        """
        data = await self._get(path, {"orderBy": '"$key"', "limitToLast": str(limit)})
        if not data:
            return None

        if isinstance(data, list):
            # Integer-keyed children are returned as a sparse array
            data = {str(i): item for i, item in enumerate(data) if item is not None}

        return {key: data[key] for key in sorted(data, key=_key_order)}

    async def list_keys(self, path: str = "") -> list[str]:
        """Return the child keys of *path* without downloading their values."""
        data = await self._get(path, {"shallow": "true"})
        if not isinstance(data, dict):
            return []
        return list(data.keys())

    def _url(self, path: str) -> str:
        node = "/".join(part for part in (self._root, path.strip("/")) if part)
        return f"{self._base_url}/{node}.json"

    async def _get(self, path: str, params: dict) -> Any:
        """Shared GET with the auth parameter. Raises LiveDataError on failure."""
        if self._auth_token:
            params = {**params, "auth": self._auth_token}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url(path), params=params)
        except httpx.HTTPError as exc:
            raise LiveDataError(path, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            raise LiveDataError(path, f"{response.status_code} {response.text}")

        return response.json()


@lru_cache
def get_live_data_client() -> LiveDataClient:
    settings = get_settings()
    return LiveDataClient(
        base_url=settings.live_data_url,
        root=settings.live_data_root,
        auth_token=settings.live_data_auth_token,
        timeout=settings.live_data_timeout_seconds,
    )
