"""
Telemetry Schemas
=================
Pydantic models for the ESP32 tracker feeds.

Two families live here:

- Raw records (RawStatusRecord, RawHealthRecord) mirror what the device
  writes to the Realtime Database. Every field is optional and unknown
  keys are kept, because the firmware schema is not versioned.
- Derived views are what the dashboard receives. They serialise with
  camelCase keys to match the web and mobile clients.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Device timestamps arrive either as epoch milliseconds or ISO strings
Timestamp = Union[int, float, str]


def _as_label(value: Any) -> Any:
    """Firmware builds write identifiers as numbers or strings; keep them as text."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


DeviceLabel = Annotated[str, BeforeValidator(_as_label)]


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

class HeartRateStatus(str, Enum):
    NO_SIGNAL = "No Signal"
    SLOW = "Slow"
    NORMAL = "Normal"
    ELEVATED = "Elevated"
    HIGH = "High"


class HeartRateZone(str, Enum):
    NO_SIGNAL = "No Signal"
    RESTING = "Resting"
    NORMAL = "Normal"
    LIGHT_EXERCISE = "Light Exercise"
    MODERATE_EXERCISE = "Moderate Exercise"
    INTENSE_EXERCISE = "Intense Exercise"


class PulseSignal(str, Enum):
    NO_SIGNAL = "No Signal"
    VERY_WEAK = "Very Weak"
    WEAK = "Weak"
    NORMAL = "Normal"
    STRONG = "Strong"
    VERY_STRONG = "Very Strong"


class BloodPressureCategory(str, Enum):
    NORMAL = "Normal"
    ELEVATED = "Elevated"
    STAGE_1_HYPERTENSION = "Stage 1 Hypertension"
    STAGE_2_HYPERTENSION = "Stage 2 Hypertension"


# ---------------------------------------------------------------------------
# Raw device records
# ---------------------------------------------------------------------------

class UserProfile(BaseModel):
    """Profile the estimator uses. Missing fields fall back to the defaults."""

    age: float = 30
    is_male: bool = Field(default=True, alias="isMale")
    weight: float = 70   # kg
    height: float = 170  # cm

    model_config = ConfigDict(populate_by_name=True)


class RawStatusRecord(BaseModel):
    """health-tracker/current-status as written by the device."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    gps_valid: Optional[bool] = None
    wifi_connected: Optional[bool] = None
    firebase_ready: Optional[bool] = None
    timestamp: Optional[Timestamp] = None
    last_update: Optional[Timestamp] = None
    device: Optional[DeviceLabel] = None
    bpm: Optional[float] = None
    bpm_valid: Optional[bool] = None
    pulse_value: Optional[float] = None

    model_config = ConfigDict(extra="allow")


class RawHealthRecord(BaseModel):
    """health-tracker/latest-health as written by the device."""

    bpm: Optional[float] = None
    valid_bpm: Optional[bool] = None
    pulse_value: Optional[float] = None
    waveform: Optional[list[float]] = None
    user_profile: Optional[UserProfile] = Field(default=None, alias="userProfile")
    health_id: Optional[DeviceLabel] = None
    timestamp: Optional[Timestamp] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DerivedHeartRate(CamelModel):
    bpm: float
    valid: bool
    status: HeartRateStatus
    zone: HeartRateZone


class BloodPressureFactors(CamelModel):
    heart_rate_factor: float
    age_factor: float
    bmi_factor: float
    gender_factor: float


class DerivedBloodPressure(CamelModel):
    """Heuristic estimate. Informational only; confidence is always Low."""

    systolic: int
    diastolic: int
    valid: bool
    category: Optional[BloodPressureCategory] = None
    confidence: Optional[str] = None
    factors: Optional[BloodPressureFactors] = None
    message: Optional[str] = None


class ValidationCheck(CamelModel):
    valid: bool
    value: Optional[Any] = None
    range: Optional[str] = None
    length: Optional[int] = None
    required: Optional[int] = None


class ReadingValidation(CamelModel):
    """Per-field verdict for one pulse sensor reading.

    ``signal_quality`` repeats the ``pulse_value`` range test on the same
    amplitude. Both keys are kept because existing clients read both.
    """

    pulse_value: ValidationCheck
    heart_rate: ValidationCheck
    waveform: ValidationCheck
    signal_quality: ValidationCheck

    @property
    def is_valid(self) -> bool:
        return all(
            check.valid
            for check in (self.pulse_value, self.heart_rate, self.waveform, self.signal_quality)
        )


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

class DeviceStatus(CamelModel):
    wifi: bool
    gps: bool
    heartbeat: bool
    last_update: str


class BloodPressureReading(DerivedBloodPressure):
    last_updated: Optional[str] = None
    note: Optional[str] = None


class PulseReading(CamelModel):
    value: float
    threshold: int
    signal: PulseSignal


class HealthView(CamelModel):
    """Composite health payload. Same shape online and offline."""

    heart_rate: DerivedHeartRate
    blood_pressure: BloodPressureReading
    pulse: PulseReading
    waveform: list[float]
    timestamp: Timestamp
    last_update: Timestamp = Field(alias="last_update")
    device: str
    health_id: str


class GpsBlock(CamelModel):
    valid: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Optional[Timestamp] = None
    message: Optional[str] = None


class HeartbeatBlock(CamelModel):
    valid: bool
    bpm: Optional[float] = None
    status: Optional[HeartRateStatus] = None
    zone: Optional[HeartRateZone] = None
    pulse_value: Optional[float] = None
    waveform: Optional[list[float]] = None
    message: Optional[str] = None


class SystemBlock(CamelModel):
    wifi: Optional[bool] = None
    firebase: Optional[bool] = None
    device: str
    timestamp: Optional[Timestamp] = None


class CombinedView(CamelModel):
    gps: GpsBlock
    heartbeat: HeartbeatBlock
    system: SystemBlock
