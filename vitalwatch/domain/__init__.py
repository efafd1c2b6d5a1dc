"""Measurement, alert and decorator types."""

from .decorators import PriorityAlert, RepeatedAlert, as_repeated, unwrap, with_priority
from .factories import (
    AlertFactory,
    BloodOxygenAlertFactory,
    BloodPressureAlertFactory,
    CombinedAlertFactory,
    ECGAlertFactory,
    ManualAlertFactory,
    factory_for,
)
from .models import Alert, AlertFamily, AlertLike, MeasurementRecord, RecordCategory

__all__ = [
    "Alert",
    "AlertFamily",
    "AlertLike",
    "MeasurementRecord",
    "RecordCategory",
    "AlertFactory",
    "BloodPressureAlertFactory",
    "BloodOxygenAlertFactory",
    "ECGAlertFactory",
    "CombinedAlertFactory",
    "ManualAlertFactory",
    "factory_for",
    "PriorityAlert",
    "RepeatedAlert",
    "with_priority",
    "as_repeated",
    "unwrap",
]
