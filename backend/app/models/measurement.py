"""
Measurement Schemas
===================
Pydantic models for saved measurements and the weekly report.

The request fields are Optional on purpose: a missing or zero reading is
rejected by MeasurementService with a 400, not by schema validation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class MeasurementCreate(_CamelModel):
    """Payload the app sends after the user takes a reading."""

    heart_rate: Optional[float] = Field(default=None, description="Beats per minute.")
    systolic: Optional[float] = Field(default=None, description="mmHg")
    diastolic: Optional[float] = Field(default=None, description="mmHg")


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class StoredMeasurement(_CamelModel):
    """One row of health_measurements. Immutable once written."""

    id: Union[int, str]  # uuid or bigint identity, depending on the migration
    user_id: str
    heart_rate: float
    systolic: float
    diastolic: float
    timestamp: datetime


class MeasurementSaved(_CamelModel):
    success: bool = True
    measurement: StoredMeasurement


class DailyAverage(_CamelModel):
    """Per-day means over the trailing week. Days without readings are absent."""

    date: str  # YYYY-MM-DD
    avg_heart_rate: float
    avg_systolic: float
    avg_diastolic: float
