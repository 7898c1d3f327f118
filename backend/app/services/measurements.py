"""
Measurement Service
===================
Saved readings and the weekly report.

- save(): persist one heart-rate / blood-pressure reading for a user
- weekly_report(): per-day averages over the trailing 7 days (today
  included), ascending by date

Days without readings are omitted from the report rather than zero-filled;
clients must not assume seven entries.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import pandas as pd

from app.db.supabase import get_supabase_client
from app.models.measurement import DailyAverage, MeasurementCreate, StoredMeasurement

logger = logging.getLogger(__name__)

MEASUREMENTS_TABLE = "health_measurements"
REPORT_WINDOW_DAYS = 7


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class InvalidMeasurementError(Exception):
    """Request is missing a reading or the user identity."""


class MeasurementStoreError(Exception):
    """Supabase did not return the row we wrote."""


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def group_daily_averages(rows: list[dict[str, Any]]) -> list[DailyAverage]:
    """Average heart_rate, systolic and diastolic per UTC calendar day.

    Groups are ordered by the first timestamp seen in each group.
    """
    if not rows:
        return []

    df = pd.DataFrame(rows)
    # PostgREST trims trailing zeros, so fractional precision varies per row
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, format="ISO8601")
    df["date"] = df["timestamp"].dt.strftime("%Y-%m-%d")

    daily = (
        df.groupby("date", sort=False)
        .agg(
            avg_heart_rate=("heart_rate", "mean"),
            avg_systolic=("systolic", "mean"),
            avg_diastolic=("diastolic", "mean"),
            first_seen=("timestamp", "first"),
        )
        .reset_index()
        .sort_values("first_seen")
    )

    return [
        DailyAverage(
            date=row.date,
            avg_heart_rate=float(row.avg_heart_rate),
            avg_systolic=float(row.avg_systolic),
            avg_diastolic=float(row.avg_diastolic),
        )
        for row in daily.itertuples(index=False)
    ]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class MeasurementService:
    """Reads and writes the health_measurements table."""

    def __init__(self) -> None:
        self._db = get_supabase_client()

    # ---- Store access ----------------------------------------------------

    def find_measurements(self, user_id: str, since: datetime) -> list[dict[str, Any]]:
        result = (
            self._db.table(MEASUREMENTS_TABLE)
            .select("heart_rate, systolic, diastolic, timestamp")
            .eq("user_id", user_id)
            .gte("timestamp", since.isoformat())
            .order("timestamp", desc=False)
            .execute()
        )
        return result.data or []

    def insert_measurement(self, row: dict[str, Any]) -> dict[str, Any]:
        result = self._db.table(MEASUREMENTS_TABLE).insert(row).execute()
        if not result.data:
            logger.error("Failed to insert measurement for user %s", row.get("user_id"))
            raise MeasurementStoreError("Failed to save measurement")
        return result.data[0]

    # ---- Operations ------------------------------------------------------

    async def save(self, user_id: Optional[str], body: MeasurementCreate) -> StoredMeasurement:
        """Persist one reading stamped with the current time.

        Zero counts as missing: a 0 bpm reading is the sensor idling.
        """
        if not user_id:
            raise InvalidMeasurementError("User ID not found")
        if not body.heart_rate or not body.systolic or not body.diastolic:
            raise InvalidMeasurementError("Missing required fields")

        row = self.insert_measurement({
            "user_id": user_id,
            "heart_rate": body.heart_rate,
            "systolic": body.systolic,
            "diastolic": body.diastolic,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        logger.info("Saved measurement %s for user %s", row.get("id"), user_id)
        return StoredMeasurement.model_validate(row)

    async def weekly_report(
        self, user_id: Optional[str], today: Optional[date] = None
    ) -> list[DailyAverage]:
        """Daily averages from ``today - 6`` through ``today`` inclusive."""
        if not user_id:
            raise InvalidMeasurementError("User ID not found")

        today = today or datetime.now(timezone.utc).date()
        window_start = today - timedelta(days=REPORT_WINDOW_DAYS - 1)
        since = datetime(window_start.year, window_start.month, window_start.day, tzinfo=timezone.utc)

        rows = self.find_measurements(user_id, since)
        logger.debug("Weekly report for user %s: %d measurements since %s",
                     user_id, len(rows), window_start)
        return group_daily_averages(rows)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_service: MeasurementService | None = None


def get_measurement_service() -> MeasurementService:
    global _default_service
    if _default_service is None:
        _default_service = MeasurementService()
    return _default_service
