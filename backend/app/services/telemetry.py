"""
Telemetry Aggregator
====================
Builds the dashboard views out of the device's Realtime Database nodes.

Two resilience policies, chosen per view:

    Resilient (latest position, status, composite health)
        Live dashboards render these every second and must never blank
        out. Missing nodes are filled from defaults and read failures
        degrade to an offline payload of the same shape. Failures are
        logged, never raised.

    Strict (combined, GPS history, heartbeat history, latest reading)
        Callers need to tell "no device yet" apart from "device present".
        Absence raises TelemetryNotFound; read failures propagate as
        LiveDataError.

Resilient views return a ViewResult so the success and fallback arms stay
distinguishable internally while serialising to the same ``{"data": ...}``
body at the router.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from app.config import get_settings
from app.db.live_data import LiveDataClient, get_live_data_client
from app.models.telemetry import (
    BloodPressureReading,
    CombinedView,
    DerivedHeartRate,
    DeviceStatus,
    GpsBlock,
    HealthView,
    HeartbeatBlock,
    HeartRateStatus,
    HeartRateZone,
    PulseReading,
    PulseSignal,
    RawHealthRecord,
    RawStatusRecord,
    ReadingValidation,
    SystemBlock,
)
from app.services.blood_pressure import DEFAULT_PROFILE, estimate_blood_pressure, round_half_up
from app.services.classifier import (
    classify_heart_rate_status,
    classify_heart_rate_zone,
    classify_pulse_signal,
)
from app.services.clock import Clock, parse_device_timestamp, to_epoch_ms, to_iso, utc_now
from app.services.reading_validator import validate_reading
from app.services.status_cache import DEFAULT_TTL_MS, StatusCache

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STATUS_PATH = "current-status"
HEALTH_PATH = "latest-health"
GPS_HISTORY_PATH = "gps"
HEARTBEAT_HISTORY_PATH = "heartbeat"

DEFAULT_DEVICE_NAME = "ESP32_Health_Tracker"
DEFAULT_PULSE_THRESHOLD = 3300
BLOOD_PRESSURE_NOTE = "Estimated based on heart rate and user profile"

# Reported averaging window; only the current reading is used
AVERAGE_TIME_PERIOD_MS = 10000


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TelemetryNotFound(Exception):
    """The requested node exists in no form yet (device never wrote it)."""


class InvalidReadingError(Exception):
    """The latest reading is present but not usable for an average."""

    def __init__(self, bpm: Optional[float], valid_bpm: Optional[bool]) -> None:
        self.bpm = bpm
        self.valid_bpm = valid_bpm
        super().__init__(f"Current heartbeat reading is not valid (bpm={bpm}, valid_bpm={valid_bpm})")


# ---------------------------------------------------------------------------
# Result wrapper for resilient views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViewResult:
    ok: bool
    payload: dict[str, Any]
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, payload: dict[str, Any]) -> ViewResult:
        return cls(ok=True, payload=payload)

    @classmethod
    def fallback(cls, payload: dict[str, Any], error: BaseException) -> ViewResult:
        return cls(ok=False, payload=payload, error=error)

    def to_response(self) -> dict[str, Any]:
        return {"data": self.payload}


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class TelemetryAggregator:
    """Composes live device nodes into normalised dashboard views."""

    def __init__(
        self,
        live_data: LiveDataClient,
        clock: Clock = utc_now,
        status_ttl_ms: int = DEFAULT_TTL_MS,
        gps_history_limit: int = 10,
        heartbeat_history_limit: int = 20,
        device_name: str = DEFAULT_DEVICE_NAME,
        pulse_threshold: int = DEFAULT_PULSE_THRESHOLD,
    ) -> None:
        self._live = live_data
        self._clock = clock
        self._gps_history_limit = gps_history_limit
        self._heartbeat_history_limit = heartbeat_history_limit
        self._device_name = device_name
        self._pulse_threshold = pulse_threshold
        self.status_cache = StatusCache(self._pull_status, ttl_ms=status_ttl_ms, clock=clock)

    # ---- Reads -----------------------------------------------------------

    async def _read_record(self, path: str) -> Optional[dict[str, Any]]:
        data = await self._live.read(path)
        return data if isinstance(data, dict) and data else None

    async def _read_status_and_health(
        self,
    ) -> tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]:
        status_raw, health_raw = await asyncio.gather(
            self._read_record(STATUS_PATH),
            self._read_record(HEALTH_PATH),
        )
        return status_raw, health_raw

    # ---- Latest position (resilient) -------------------------------------

    def _default_position(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "latitude": 0,
            "longitude": 0,
            "gps_valid": False,
            "timestamp": to_iso(now),
            "wifi_connected": False,
            "firebase_ready": False,
            "last_update": to_epoch_ms(now),
        }

    async def latest_position(self) -> ViewResult:
        """Current status node merged over defaults.

        ``timestamp`` and ``last_update`` fall back to the defaults whenever
        the device record lacks them, even if other fields are present.
        """
        defaults = self._default_position()
        try:
            data = await self._read_record(STATUS_PATH) or {}
        except Exception as exc:
            logger.exception("Failed to read device position; serving defaults")
            return ViewResult.fallback(defaults, exc)

        merged = {
            **defaults,
            **data,
            "timestamp": data.get("timestamp") or defaults["timestamp"],
            "last_update": data.get("last_update") or defaults["last_update"],
        }
        return ViewResult.success(merged)

    # ---- Status (resilient, cached) --------------------------------------

    async def _pull_status(self) -> DeviceStatus:
        data = await self._read_record(STATUS_PATH) or {}
        record = RawStatusRecord.model_validate(data)

        if record.timestamp:
            last_update = to_iso(parse_device_timestamp(record.timestamp))
        else:
            last_update = to_iso(self._clock())

        return DeviceStatus(
            wifi=bool(record.wifi_connected),
            gps=bool(record.gps_valid),
            heartbeat=bool(record.bpm_valid),
            last_update=last_update,
        )

    async def status(self) -> DeviceStatus:
        return await self.status_cache.get()

    # ---- Composite health (resilient) ------------------------------------

    def _build_health_view(
        self,
        status: RawStatusRecord,
        health: RawHealthRecord,
    ) -> HealthView:
        now = self._clock()
        now_iso = to_iso(now)

        if health.bpm is not None:
            heart_rate = health.bpm
        elif status.bpm is not None:
            heart_rate = status.bpm
        else:
            heart_rate = 0

        profile = health.user_profile or DEFAULT_PROFILE
        estimate = estimate_blood_pressure(heart_rate, profile)
        pulse_value = health.pulse_value or status.pulse_value

        return HealthView(
            heart_rate=DerivedHeartRate(
                bpm=heart_rate,
                valid=bool(health.valid_bpm or status.bpm_valid),
                status=classify_heart_rate_status(heart_rate),
                zone=classify_heart_rate_zone(heart_rate),
            ),
            blood_pressure=BloodPressureReading(
                **estimate.model_dump(),
                last_updated=now_iso,
                note=BLOOD_PRESSURE_NOTE,
            ),
            pulse=PulseReading(
                value=pulse_value or 0,
                threshold=self._pulse_threshold,
                signal=classify_pulse_signal(pulse_value),
            ),
            waveform=health.waveform or [],
            timestamp=status.timestamp or health.timestamp or now_iso,
            last_update=status.last_update or to_epoch_ms(now),
            device=status.device or self._device_name,
            health_id=health.health_id or "current",
        )

    def _offline_health_view(self) -> HealthView:
        now = self._clock()
        return HealthView(
            heart_rate=DerivedHeartRate(
                bpm=0,
                valid=False,
                status=HeartRateStatus.NO_SIGNAL,
                zone=HeartRateZone.NO_SIGNAL,
            ),
            blood_pressure=BloodPressureReading(
                systolic=0,
                diastolic=0,
                valid=False,
                message="No data available",
            ),
            pulse=PulseReading(
                value=0,
                threshold=self._pulse_threshold,
                signal=PulseSignal.NO_SIGNAL,
            ),
            waveform=[],
            timestamp=to_iso(now),
            last_update=to_epoch_ms(now),
            device=self._device_name,
            health_id="offline",
        )

    async def health(self) -> ViewResult:
        """Heart rate, estimated blood pressure and pulse in one payload."""
        try:
            status_raw, health_raw = await self._read_status_and_health()
            view = self._build_health_view(
                RawStatusRecord.model_validate(status_raw or {}),
                RawHealthRecord.model_validate(health_raw or {}),
            )
        except Exception as exc:
            logger.exception("Failed to build health view; serving offline payload")
            fallback = self._offline_health_view()
            return ViewResult.fallback(fallback.model_dump(by_alias=True, mode="json"), exc)

        return ViewResult.success(view.model_dump(by_alias=True, mode="json"))

    # ---- Combined (strict) -----------------------------------------------

    async def combined(self) -> CombinedView:
        """GPS, heartbeat and system blocks. Raises TelemetryNotFound without a status node."""
        status_raw, health_raw = await self._read_status_and_health()

        if status_raw is None:
            raise TelemetryNotFound("No ESP32 data found")

        status = RawStatusRecord.model_validate(status_raw)

        if status.gps_valid:
            gps = GpsBlock(
                valid=True,
                latitude=status.latitude,
                longitude=status.longitude,
                timestamp=status.timestamp,
            )
        else:
            gps = GpsBlock(valid=False, message="GPS signal not available")

        if health_raw is not None:
            health = RawHealthRecord.model_validate(health_raw)
            heartbeat = HeartbeatBlock(
                bpm=health.bpm or 0,
                valid=bool(health.valid_bpm),
                status=classify_heart_rate_status(health.bpm),
                zone=classify_heart_rate_zone(health.bpm),
                pulse_value=health.pulse_value or 0,
                waveform=health.waveform or [],
            )
        else:
            heartbeat = HeartbeatBlock(valid=False, message="Heartbeat data not available")

        return CombinedView(
            gps=gps,
            heartbeat=heartbeat,
            system=SystemBlock(
                wifi=status.wifi_connected,
                firebase=status.firebase_ready,
                device=status.device or self._device_name,
                timestamp=status.timestamp,
            ),
        )

    # ---- History (strict) ------------------------------------------------

    async def _history(self, path: str, limit: int, label: str) -> list[dict[str, Any]]:
        data = await self._live.read_last(path, limit)
        if not data:
            raise TelemetryNotFound(f"No {label} history found")

        entries = []
        for key, value in data.items():
            if isinstance(value, dict):
                entries.append({"id": key, **value})
            else:
                entries.append({"id": key, "value": value})
        return entries

    async def gps_history(self) -> list[dict[str, Any]]:
        return await self._history(GPS_HISTORY_PATH, self._gps_history_limit, "ESP32 GPS")

    async def heartbeat_history(self) -> list[dict[str, Any]]:
        return await self._history(
            HEARTBEAT_HISTORY_PATH, self._heartbeat_history_limit, "heartbeat"
        )

    # ---- Latest reading (strict) -----------------------------------------

    async def latest_reading(self) -> RawHealthRecord:
        data = await self._read_record(HEALTH_PATH)
        if data is None:
            raise TelemetryNotFound("No heartbeat data found")
        return RawHealthRecord.model_validate(data)

    async def validate_latest(self) -> tuple[RawHealthRecord, ReadingValidation]:
        record = await self.latest_reading()
        verdict = validate_reading(record)
        logger.info(
            "Heart rate validation: valid=%s bpm=%s pulse=%s",
            verdict.is_valid, record.bpm, record.pulse_value,
        )
        return record, verdict

    async def average_heart_rate(self) -> dict[str, Any]:
        """Average over the current reading only; history is not sampled yet."""
        record = await self.latest_reading()
        bpm = record.bpm
        flagged_valid = True if record.valid_bpm is None else record.valid_bpm

        if not (flagged_valid and bpm is not None and 0 < bpm < 220):
            raise InvalidReadingError(bpm, record.valid_bpm)

        return {
            "averageBPM": round_half_up(bpm),
            "readingsCount": 1,
            "timePeriod": AVERAGE_TIME_PERIOD_MS,
            "readings": [{"bpm": bpm, "timestamp": record.timestamp}],
            "note": "Using current reading as average (historical data not available)",
        }

    # ---- Connectivity ----------------------------------------------------

    async def available_paths(self) -> list[str]:
        return await self._live.list_keys()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------


@lru_cache
def get_telemetry_aggregator() -> TelemetryAggregator:
    settings = get_settings()
    return TelemetryAggregator(
        live_data=get_live_data_client(),
        status_ttl_ms=settings.status_cache_ttl_ms,
        gps_history_limit=settings.gps_history_limit,
        heartbeat_history_limit=settings.heartbeat_history_limit,
        device_name=settings.default_device_name,
        pulse_threshold=settings.pulse_threshold,
    )
