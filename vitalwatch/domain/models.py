"""
Domain models for vital-sign monitoring.

These models represent the core clinical concepts and are framework-agnostic.
They use Pydantic for validation; records and alerts are frozen so nothing
downstream of ingestion can rewrite them.
"""

from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field


class RecordCategory(str, Enum):
    """Well-known measurement categories. Other category strings pass through."""

    BLOOD_PRESSURE_SYSTOLIC = "BloodPressureSystolic"
    BLOOD_PRESSURE_DIASTOLIC = "BloodPressureDiastolic"
    BLOOD_SATURATION = "BloodSaturation"
    ECG = "ECG"
    MANUAL_OVERRIDE = "ManualOverride"


class AlertFamily(str, Enum):
    """Rule families, in the order the engine evaluates them."""

    BLOOD_PRESSURE = "blood_pressure"
    BLOOD_OXYGEN = "blood_oxygen"
    COMBINED = "combined"
    ECG = "ecg"
    MANUAL = "manual"


class MeasurementRecord(BaseModel):
    """Individual timestamped vital-sign reading."""

    model_config = ConfigDict(frozen=True)

    patient_id: int
    value: float
    category: str = Field(description="RecordCategory value or any pass-through label")
    timestamp: int = Field(description="Milliseconds since the epoch")


class Alert(BaseModel):
    """Alert event produced by a rule strategy."""

    model_config = ConfigDict(frozen=True)

    patient_id: str
    condition: str
    timestamp: int


class AlertLike(Protocol):
    """Anything that reads like an alert: base alerts and decorated alerts."""

    @property
    def patient_id(self) -> str: ...

    @property
    def condition(self) -> str: ...

    @property
    def timestamp(self) -> int: ...
