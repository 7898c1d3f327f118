"""
Blood Pressure Estimator
========================
Derives a systolic/diastolic estimate from heart rate and a user profile.

This is a fixed linear heuristic with no clinical validation. It exists so
the dashboard can show a rough indicator between cuff readings; every
result is tagged ``confidence="Low"`` and carries the intermediate factors
so a reviewer can reproduce the number by hand. Do not tune the constants
without new domain input; clients compare against historical values.
"""

from __future__ import annotations

import math
from typing import Optional

from app.models.telemetry import (
    BloodPressureCategory,
    BloodPressureFactors,
    DerivedBloodPressure,
    UserProfile,
)

BASE_SYSTOLIC = 120
BASE_DIASTOLIC = 80
MIN_HEART_RATE = 30
MAX_HEART_RATE = 220

DEFAULT_PROFILE = UserProfile()


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def classify_blood_pressure(systolic: int, diastolic: int) -> BloodPressureCategory:
    """ACC/AHA-style ladder, evaluated top to bottom."""
    if systolic < 120 and diastolic < 80:
        return BloodPressureCategory.NORMAL
    if systolic < 130 and diastolic < 80:
        return BloodPressureCategory.ELEVATED
    if systolic < 140 or diastolic < 90:
        return BloodPressureCategory.STAGE_1_HYPERTENSION
    return BloodPressureCategory.STAGE_2_HYPERTENSION


def estimate_blood_pressure(
    heart_rate: Optional[float],
    profile: Optional[UserProfile] = None,
) -> DerivedBloodPressure:
    """Estimate blood pressure for *heart_rate* (bpm).

    Returns ``valid=False`` with zeroed pressures when the heart rate is
    missing or outside 30-220 bpm. Pure: identical inputs give identical
    output.
    """
    if not heart_rate or heart_rate < MIN_HEART_RATE or heart_rate > MAX_HEART_RATE:
        return DerivedBloodPressure(
            systolic=0,
            diastolic=0,
            valid=False,
            message="Invalid heart rate",
        )

    profile = profile or DEFAULT_PROFILE

    # 0.5 mmHg per bpm away from 70
    hr_factor = (heart_rate - 70) * 0.5
    age_factor = max(0.0, (profile.age - 30) * 0.3)
    bmi = profile.weight / ((profile.height / 100) ** 2)
    bmi_factor = max(0.0, (bmi - 25) * 0.5)
    gender_factor = 2.0 if profile.is_male else 0.0

    systolic = round_half_up(BASE_SYSTOLIC + hr_factor + age_factor + bmi_factor + gender_factor)
    diastolic = round_half_up(
        BASE_DIASTOLIC + hr_factor * 0.5 + age_factor * 0.5 + bmi_factor * 0.5
    )

    return DerivedBloodPressure(
        systolic=systolic,
        diastolic=diastolic,
        category=classify_blood_pressure(systolic, diastolic),
        valid=True,
        confidence="Low",
        factors=BloodPressureFactors(
            heart_rate_factor=hr_factor,
            age_factor=age_factor,
            bmi_factor=bmi_factor,
            gender_factor=gender_factor,
        ),
    )
