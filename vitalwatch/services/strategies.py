"""
Rule strategies, one per alert family.

Every strategy receives the full record set of one patient, already sorted by
timestamp, and returns the alerts it finds. Strategies never sort, never keep
state between calls and never raise on missing or short sub-streams: no data
simply means no alert.

The catalog is closed. The engine runs the five strategies below in a fixed
order: blood pressure, blood oxygen, combined, ECG, manual override.
"""

from collections.abc import Sequence
from typing import Protocol

from vitalwatch.config import RuleThresholds
from vitalwatch.domain.factories import AlertFactory
from vitalwatch.domain.models import Alert, AlertFamily, MeasurementRecord, RecordCategory


def filter_category(
    records: Sequence[MeasurementRecord], category: RecordCategory
) -> list[MeasurementRecord]:
    """Sub-stream of one category, keeping the incoming order."""
    return [r for r in records if r.category == category.value]


class AlertStrategy(Protocol):
    """Evaluates one alert family against a patient's sorted records."""

    family: AlertFamily

    def check_alerts(self, patient_id: int, records: Sequence[MeasurementRecord]) -> list[Alert]:
        ...


class _BaseStrategy:
    family: AlertFamily

    def __init__(
        self, thresholds: RuleThresholds | None = None, alert_factory: AlertFactory | None = None
    ) -> None:
        self.thresholds = thresholds or RuleThresholds()
        self.alert_factory = alert_factory or AlertFactory()

    def _alert(self, patient_id: int, condition: str, timestamp: int) -> Alert:
        return self.alert_factory.create_alert(str(patient_id), condition, timestamp)


class BloodPressureStrategy(_BaseStrategy):
    """Critical systolic/diastolic limits on the latest reading, plus sliding trends."""

    family = AlertFamily.BLOOD_PRESSURE

    def check_alerts(self, patient_id: int, records: Sequence[MeasurementRecord]) -> list[Alert]:
        systolic = filter_category(records, RecordCategory.BLOOD_PRESSURE_SYSTOLIC)
        diastolic = filter_category(records, RecordCategory.BLOOD_PRESSURE_DIASTOLIC)
        t = self.thresholds

        alerts = self._check_limits(
            patient_id, systolic, "Systolic", t.systolic_critical_low, t.systolic_critical_high
        )
        alerts += self._check_limits(
            patient_id, diastolic, "Diastolic", t.diastolic_critical_low, t.diastolic_critical_high
        )
        alerts += self._check_trends(patient_id, systolic, "Systolic")
        alerts += self._check_trends(patient_id, diastolic, "Diastolic")
        return alerts

    def _check_limits(
        self,
        patient_id: int,
        readings: list[MeasurementRecord],
        name: str,
        low: float,
        high: float,
    ) -> list[Alert]:
        if not readings:
            return []

        latest = readings[-1]
        alerts = []
        if latest.value > high:
            alerts.append(
                self._alert(patient_id, f"Critical {name} High: {latest.value}", latest.timestamp)
            )
        if latest.value < low:
            alerts.append(
                self._alert(patient_id, f"Critical {name} Low: {latest.value}", latest.timestamp)
            )
        return alerts

    def _check_trends(
        self, patient_id: int, readings: list[MeasurementRecord], name: str
    ) -> list[Alert]:
        size = self.thresholds.bp_trend_readings
        change = self.thresholds.bp_trend_change
        alerts = []

        # Every window position fires on its own, so a long run yields len - size + 1 alerts.
        for start in range(len(readings) - size + 1):
            window = readings[start : start + size]
            diffs = [b.value - a.value for a, b in zip(window, window[1:])]
            timestamp = window[-1].timestamp

            if all(d > change for d in diffs):
                alerts.append(self._alert(patient_id, f"{name} Increasing Trend", timestamp))
            if all(d < -change for d in diffs):
                alerts.append(self._alert(patient_id, f"{name} Decreasing Trend", timestamp))
        return alerts


class BloodOxygenStrategy(_BaseStrategy):
    """Low saturation on the latest reading and rapid drops inside the look-back window."""

    family = AlertFamily.BLOOD_OXYGEN

    def check_alerts(self, patient_id: int, records: Sequence[MeasurementRecord]) -> list[Alert]:
        saturation = filter_category(records, RecordCategory.BLOOD_SATURATION)
        if not saturation:
            return []

        latest = saturation[-1]
        alerts = []
        if latest.value < self.thresholds.saturation_low:
            alerts.append(
                self._alert(patient_id, f"Low Blood Saturation: {latest.value}", latest.timestamp)
            )
        if self._has_rapid_drop(saturation):
            alerts.append(self._alert(patient_id, "Rapid Blood Saturation Drop", latest.timestamp))
        return alerts

    def _has_rapid_drop(self, readings: list[MeasurementRecord]) -> bool:
        latest = readings[-1]
        for earlier in reversed(readings[:-1]):
            if latest.timestamp - earlier.timestamp > self.thresholds.saturation_drop_window_ms:
                return False
            if earlier.value - latest.value >= self.thresholds.saturation_rapid_drop:
                return True
        return False


class CombinedStrategy(_BaseStrategy):
    """Hypotensive hypoxemia: low systolic and low saturation at the same time."""

    family = AlertFamily.COMBINED

    def check_alerts(self, patient_id: int, records: Sequence[MeasurementRecord]) -> list[Alert]:
        systolic = filter_category(records, RecordCategory.BLOOD_PRESSURE_SYSTOLIC)
        saturation = filter_category(records, RecordCategory.BLOOD_SATURATION)
        if not systolic or not saturation:
            return []

        latest_systolic = systolic[-1]
        latest_saturation = saturation[-1]
        if (
            latest_systolic.value < self.thresholds.systolic_critical_low
            and latest_saturation.value < self.thresholds.saturation_low
        ):
            timestamp = max(latest_systolic.timestamp, latest_saturation.timestamp)
            return [self._alert(patient_id, "Hypotensive Hypoxemia Alert", timestamp)]
        return []


class ECGStrategy(_BaseStrategy):
    """
    Peak detection on the latest ECG value.

    The window is the most recent ``ecg_window_size`` readings; the latest one is
    compared against the mean of the readings before it in that window. The
    latest reading is left out of its own baseline, so nine zeros followed by
    1.5 is a zero-baseline case and the reported ``Avg`` covers nine readings,
    not ten.
    """

    family = AlertFamily.ECG

    def check_alerts(self, patient_id: int, records: Sequence[MeasurementRecord]) -> list[Alert]:
        ecg = filter_category(records, RecordCategory.ECG)
        size = self.thresholds.ecg_window_size
        if len(ecg) < size:
            return []

        window = ecg[-size:]
        latest = window[-1]
        baseline = window[:-1] or window
        average = sum(r.value for r in baseline) / len(baseline)

        if average != 0 and abs(latest.value) > abs(average * self.thresholds.ecg_peak_factor):
            condition = f"Abnormal ECG Peak: {latest.value} (Avg: {average:.2f})"
            return [self._alert(patient_id, condition, latest.timestamp)]
        if average == 0 and abs(latest.value) > self.thresholds.ecg_zero_baseline_limit:
            condition = f"Abnormal ECG Activity (from zero baseline): {latest.value}"
            return [self._alert(patient_id, condition, latest.timestamp)]
        return []


class ManualOverrideStrategy(_BaseStrategy):
    """Every positive manual override record is an alert of its own."""

    family = AlertFamily.MANUAL

    def check_alerts(self, patient_id: int, records: Sequence[MeasurementRecord]) -> list[Alert]:
        return [
            self._alert(patient_id, "Manual Alert Triggered", record.timestamp)
            for record in filter_category(records, RecordCategory.MANUAL_OVERRIDE)
            if record.value > 0
        ]
