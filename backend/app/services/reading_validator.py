"""
Reading Validator
=================
Acceptance ranges for a single pulse sensor reading.

A failed check is a normal result, not an error: the caller gets the
itemised verdict and decides what to show. A missing field fails its
check.
"""

from __future__ import annotations

from typing import Optional

from app.models.telemetry import RawHealthRecord, ReadingValidation, ValidationCheck

PULSE_VALUE_RANGE = (500, 8000)
HEART_RATE_RANGE = (30, 220)
MIN_WAVEFORM_SAMPLES = 10


def _in_range(value: Optional[float], bounds: tuple[int, int]) -> bool:
    low, high = bounds
    return value is not None and low <= value <= high


def validate_reading(record: RawHealthRecord) -> ReadingValidation:
    pulse_ok = _in_range(record.pulse_value, PULSE_VALUE_RANGE)
    pulse_range = f"{PULSE_VALUE_RANGE[0]}-{PULSE_VALUE_RANGE[1]}"
    waveform_length = len(record.waveform or [])

    return ReadingValidation(
        pulse_value=ValidationCheck(
            valid=pulse_ok,
            value=record.pulse_value,
            range=pulse_range,
        ),
        heart_rate=ValidationCheck(
            valid=_in_range(record.bpm, HEART_RATE_RANGE) and bool(record.valid_bpm),
            value=record.bpm,
            range=f"{HEART_RATE_RANGE[0]}-{HEART_RATE_RANGE[1]} BPM",
        ),
        waveform=ValidationCheck(
            valid=waveform_length >= MIN_WAVEFORM_SAMPLES,
            length=waveform_length,
            required=MIN_WAVEFORM_SAMPLES,
        ),
        # Same amplitude gate as pulse_value; see ReadingValidation
        signal_quality=ValidationCheck(
            valid=pulse_ok,
            value=record.pulse_value,
            range=pulse_range,
        ),
    )
