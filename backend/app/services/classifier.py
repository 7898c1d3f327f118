"""
Range Classifier
================
Maps single readings to the labels shown on the dashboard.

Zero, None and any other falsy reading all mean "the sensor has nothing"
and map to No Signal. The device writes 0 when the finger is off the
sensor, so this is the normal idle state, not an error.
"""

from __future__ import annotations

from typing import Optional

from app.models.telemetry import HeartRateStatus, HeartRateZone, PulseSignal


def classify_heart_rate_status(bpm: Optional[float]) -> HeartRateStatus:
    if not bpm:
        return HeartRateStatus.NO_SIGNAL
    if bpm < 60:
        return HeartRateStatus.SLOW
    if bpm <= 100:
        return HeartRateStatus.NORMAL
    if bpm <= 140:
        return HeartRateStatus.ELEVATED
    return HeartRateStatus.HIGH


def classify_heart_rate_zone(bpm: Optional[float]) -> HeartRateZone:
    if not bpm:
        return HeartRateZone.NO_SIGNAL
    if bpm < 60:
        return HeartRateZone.RESTING
    if bpm < 100:
        return HeartRateZone.NORMAL
    if bpm < 140:
        return HeartRateZone.LIGHT_EXERCISE
    if bpm < 170:
        return HeartRateZone.MODERATE_EXERCISE
    return HeartRateZone.INTENSE_EXERCISE


def classify_pulse_signal(pulse_value: Optional[float]) -> PulseSignal:
    """Label the raw pulse sensor amplitude (12-bit ADC, 0-4095)."""
    if not pulse_value:
        return PulseSignal.NO_SIGNAL
    if pulse_value < 1000:
        return PulseSignal.VERY_WEAK
    if pulse_value < 2000:
        return PulseSignal.WEAK
    if pulse_value < 3000:
        return PulseSignal.NORMAL
    if pulse_value < 4000:
        return PulseSignal.STRONG
    return PulseSignal.VERY_STRONG
