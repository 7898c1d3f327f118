"""
Telemetry Router
================
Live ESP32 tracker feeds for the dashboard.

    GET /api/v1/telemetry/latest             position snapshot (never fails)
    GET /api/v1/telemetry/status             cached connectivity flags (never fails)
    GET /api/v1/telemetry/health             heart rate + BP estimate (never fails)
    GET /api/v1/telemetry/combined           GPS + heartbeat + system, 404 if no device
    GET /api/v1/telemetry/history/gps        last GPS fixes, 404 if none
    GET /api/v1/telemetry/history/heartbeat  last heartbeat samples, 404 if none
    GET /api/v1/telemetry/validate           range checks on the latest reading
    GET /api/v1/telemetry/average            heart rate average
    GET /api/v1/telemetry/connectivity       Realtime Database reachability

All bodies carry a ``data`` key on success. Errors use the usual
``detail: {message, code}`` shape.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.db.live_data import LiveDataError
from app.services.telemetry import (
    InvalidReadingError,
    TelemetryNotFound,
    get_telemetry_aggregator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/telemetry", tags=["telemetry"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _not_found(exc: TelemetryNotFound) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": str(exc), "code": "not_found"},
    )


def _upstream_error(message: str, exc: Exception) -> HTTPException:
    logger.error("%s: %s", message, exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": message, "code": "upstream_error"},
    )


# ---------------------------------------------------------------------------
# Resilient views
# ---------------------------------------------------------------------------

@router.get(
    "/latest",
    summary="Latest device position",
    description="Current status node merged over defaults. Always 200.",
)
async def get_latest_position() -> dict[str, Any]:
    result = await get_telemetry_aggregator().latest_position()
    return result.to_response()


@router.get(
    "/status",
    summary="Device connectivity status",
    description="WiFi, GPS and heartbeat flags, cached for a short TTL. Always 200.",
)
async def get_device_status() -> dict[str, Any]:
    device_status = await get_telemetry_aggregator().status()
    return {"data": device_status.model_dump(by_alias=True, mode="json")}


@router.get(
    "/health",
    summary="Composite health view",
    description=(
        "Heart rate status and zone, estimated blood pressure and pulse signal. "
        "Returns an offline payload of the same shape when the device is unreachable."
    ),
)
async def get_health_view() -> dict[str, Any]:
    result = await get_telemetry_aggregator().health()
    return result.to_response()


# ---------------------------------------------------------------------------
# Strict views
# ---------------------------------------------------------------------------

@router.get(
    "/combined",
    summary="Combined GPS and heartbeat data",
    responses={
        404: {"description": "Device has not reported yet"},
        500: {"description": "Realtime Database unavailable"},
    },
)
async def get_combined_data() -> dict[str, Any]:
    try:
        view = await get_telemetry_aggregator().combined()
    except TelemetryNotFound as exc:
        raise _not_found(exc) from exc
    except (LiveDataError, ValidationError) as exc:
        raise _upstream_error("Error fetching combined data", exc) from exc

    return {"data": view.model_dump(by_alias=True, mode="json", exclude_none=True)}


@router.get(
    "/history/gps",
    summary="Recent GPS fixes",
    responses={404: {"description": "No GPS history yet"}},
)
async def get_gps_history() -> dict[str, Any]:
    try:
        entries = await get_telemetry_aggregator().gps_history()
    except TelemetryNotFound as exc:
        raise _not_found(exc) from exc
    except LiveDataError as exc:
        raise _upstream_error("Error fetching ESP32 GPS history", exc) from exc

    return {"data": entries, "count": len(entries)}


@router.get(
    "/history/heartbeat",
    summary="Recent heartbeat samples",
    responses={404: {"description": "No heartbeat history yet"}},
)
async def get_heartbeat_history() -> dict[str, Any]:
    try:
        entries = await get_telemetry_aggregator().heartbeat_history()
    except TelemetryNotFound as exc:
        raise _not_found(exc) from exc
    except LiveDataError as exc:
        raise _upstream_error("Error fetching heartbeat history", exc) from exc

    return {"data": entries, "count": len(entries)}


@router.get(
    "/validate",
    summary="Validate the latest heart rate reading",
    description="A failed check is a normal 200 response with valid=false.",
    responses={404: {"description": "No heartbeat data yet"}},
)
async def validate_heart_rate() -> Any:
    try:
        record, verdict = await get_telemetry_aggregator().validate_latest()
    except TelemetryNotFound as exc:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"valid": False, "message": str(exc), "reason": "No data available"},
        )
    except (LiveDataError, ValidationError) as exc:
        raise _upstream_error("Error validating heart rate", exc) from exc

    is_valid = verdict.is_valid
    return {
        "valid": is_valid,
        "message": "Heart rate validation passed" if is_valid else "Heart rate validation failed",
        "validation": verdict.model_dump(by_alias=True, mode="json", exclude_none=True),
        "data": {
            "bpm": record.bpm,
            "pulseValue": record.pulse_value,
            "waveformLength": len(record.waveform or []),
            "timestamp": record.timestamp,
        },
    }


@router.get(
    "/average",
    summary="Average heart rate",
    responses={
        400: {"description": "Latest reading is not valid"},
        404: {"description": "No heartbeat data yet"},
    },
)
async def get_average_heart_rate() -> Any:
    try:
        average = await get_telemetry_aggregator().average_heart_rate()
    except TelemetryNotFound as exc:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"message": str(exc), "averageBPM": 0, "readingsCount": 0},
        )
    except InvalidReadingError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Current heartbeat reading is not valid",
                "averageBPM": 0,
                "readingsCount": 0,
            },
        )
    except (LiveDataError, ValidationError) as exc:
        raise _upstream_error("Error calculating average heart rate", exc) from exc

    return average


@router.get(
    "/connectivity",
    summary="Realtime Database connectivity probe",
)
async def check_connectivity() -> Any:
    try:
        paths = await get_telemetry_aggregator().available_paths()
    except LiveDataError as exc:
        logger.error("Realtime Database connectivity check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "message": "Realtime Database connection test failed",
                "connected": False,
                "error": exc.reason,
            },
        )

    return {
        "message": "Realtime Database connection test",
        "connected": True,
        "availablePaths": paths,
    }
