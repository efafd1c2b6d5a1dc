"""Simulated patient telemetry."""

from .generators import (
    AlertGenerator,
    BloodPressureDataGenerator,
    BloodSaturationDataGenerator,
    ECGDataGenerator,
    PatientDataGenerator,
)
from .simulator import HealthDataSimulator, SimulationContext, build_outputs

__all__ = [
    "AlertGenerator",
    "BloodPressureDataGenerator",
    "BloodSaturationDataGenerator",
    "ECGDataGenerator",
    "HealthDataSimulator",
    "PatientDataGenerator",
    "SimulationContext",
    "build_outputs",
]
