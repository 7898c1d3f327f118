"""
Measurements Router
===================

    GET  /api/v1/health/             route ping
    POST /api/v1/health/measurement  save one heart rate + blood pressure reading
    GET  /api/v1/health/report       per-day averages for the last 7 days

Both data endpoints require a Supabase bearer token. A reading with any
value missing or zero is rejected with 400 and nothing is written.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Header, HTTPException, status

from app.db.supabase import get_supabase_client
from app.models.measurement import DailyAverage, MeasurementCreate, MeasurementSaved
from app.services.measurements import (
    InvalidMeasurementError,
    get_measurement_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["measurements"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_authenticated_user_id(authorization: str) -> str | None:
    """Verify the JWT with Supabase Auth and return the user id.

    Raises HTTPException 401 if the token is invalid or missing. Returns
    None when the token verifies but carries no user id; the service
    turns that into a 400.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Missing or invalid authorization header", "code": "auth_required"},
        )

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Empty bearer token", "code": "auth_required"},
        )

    db = get_supabase_client()

    try:
        auth_response = db.auth.get_user(token)
    except Exception as exc:
        logger.warning("Auth token verification failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid or expired token", "code": "auth_invalid"},
        ) from exc

    if not auth_response or not auth_response.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "User not found for token", "code": "auth_invalid"},
        )

    return auth_response.user.id


def _invalid_input(exc: InvalidMeasurementError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": str(exc), "code": "invalid_input"},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/", summary="Health route ping")
async def get_health() -> dict:
    return {"status": "ok", "message": "Health route is working!"}


@router.post(
    "/measurement",
    response_model=MeasurementSaved,
    status_code=status.HTTP_200_OK,
    summary="Save a measurement",
    responses={
        200: {"description": "Measurement saved"},
        400: {"description": "Missing heart rate, systolic or diastolic"},
        401: {"description": "Authentication required"},
    },
)
async def save_measurement(
    body: MeasurementCreate,
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> MeasurementSaved:
    user_id = _get_authenticated_user_id(authorization)

    try:
        measurement = await get_measurement_service().save(user_id, body)
    except InvalidMeasurementError as exc:
        raise _invalid_input(exc) from exc
    except Exception as exc:
        logger.exception("Error saving measurement for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Error saving measurement", "code": "db_error"},
        ) from exc

    return MeasurementSaved(measurement=measurement)


@router.get(
    "/report",
    response_model=list[DailyAverage],
    summary="Weekly report",
    description=(
        "Per-day average heart rate, systolic and diastolic for the last 7 days "
        "(today included), ascending by date. Days without readings are omitted."
    ),
    responses={
        401: {"description": "Authentication required"},
    },
)
async def get_weekly_report(
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> list[DailyAverage]:
    user_id = _get_authenticated_user_id(authorization)

    try:
        return await get_measurement_service().weekly_report(user_id)
    except InvalidMeasurementError as exc:
        raise _invalid_input(exc) from exc
    except Exception as exc:
        logger.exception("Error fetching weekly report for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Error fetching weekly report", "code": "db_error"},
        ) from exc
