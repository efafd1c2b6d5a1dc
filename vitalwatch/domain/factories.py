"""
Alert factories.

A factory turns ``(patient_id, condition, timestamp)`` into an ``Alert``. The
plain factory keeps the condition untouched; family factories tag the
condition with the family label so alerts from several rule families can be
told apart once they are merged into a single stream.
"""

from typing import ClassVar

from vitalwatch.domain.models import Alert, AlertFamily


class AlertFactory:
    """Builds untagged alerts. Subclasses set ``label`` to prefix conditions."""

    label: ClassVar[str | None] = None

    def create_alert(self, patient_id: str, condition: str, timestamp: int) -> Alert:
        if self.label:
            condition = f"{self.label}: {condition}"
        return Alert(patient_id=patient_id, condition=condition, timestamp=timestamp)


class BloodPressureAlertFactory(AlertFactory):
    label = "Blood Pressure"


class BloodOxygenAlertFactory(AlertFactory):
    label = "Blood Oxygen"


class ECGAlertFactory(AlertFactory):
    label = "ECG"


class CombinedAlertFactory(AlertFactory):
    label = "Combined"


class ManualAlertFactory(AlertFactory):
    label = "Manual"


_FAMILY_FACTORIES: dict[AlertFamily, type[AlertFactory]] = {
    AlertFamily.BLOOD_PRESSURE: BloodPressureAlertFactory,
    AlertFamily.BLOOD_OXYGEN: BloodOxygenAlertFactory,
    AlertFamily.COMBINED: CombinedAlertFactory,
    AlertFamily.ECG: ECGAlertFactory,
    AlertFamily.MANUAL: ManualAlertFactory,
}


def factory_for(family: AlertFamily) -> AlertFactory:
    """Return the tagging factory for a rule family."""
    return _FAMILY_FACTORIES[family]()
