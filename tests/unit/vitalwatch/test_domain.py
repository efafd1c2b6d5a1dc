"""
Tests for the alert domain: records, factories and decorators.

Decorators get an injected clock so repeat timing is exact.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from vitalwatch.domain import (
    Alert,
    AlertFactory,
    AlertFamily,
    BloodOxygenAlertFactory,
    BloodPressureAlertFactory,
    CombinedAlertFactory,
    ECGAlertFactory,
    ManualAlertFactory,
    MeasurementRecord,
    PriorityAlert,
    RepeatedAlert,
    as_repeated,
    factory_for,
    unwrap,
    with_priority,
)


class FakeClock:
    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def alert() -> Alert:
    return Alert(patient_id="1", condition="Test Condition", timestamp=1_000)


class TestModels:
    @given(
        patient_id=st.integers(min_value=1, max_value=10_000),
        value=st.floats(allow_nan=False, allow_infinity=False),
        timestamp=st.integers(min_value=0, max_value=2**53),
    )
    def test_record_keeps_its_fields(self, patient_id: int, value: float, timestamp: int) -> None:
        record = MeasurementRecord(
            patient_id=patient_id, value=value, category="ECG", timestamp=timestamp
        )

        assert record.patient_id == patient_id
        assert record.value == value
        assert record.timestamp == timestamp

    def test_record_immutability(self) -> None:
        record = MeasurementRecord(patient_id=1, value=1.0, category="ECG", timestamp=0)

        with pytest.raises(ValueError, match="frozen"):
            record.value = 2.0  # type: ignore

    def test_alert_immutability(self, alert: Alert) -> None:
        with pytest.raises(ValueError, match="frozen"):
            alert.condition = "changed"  # type: ignore

    def test_unknown_category_passes_through(self) -> None:
        record = MeasurementRecord(patient_id=1, value=72.0, category="HeartRate", timestamp=0)
        assert record.category == "HeartRate"


class TestFactories:
    def test_plain_factory_keeps_condition(self) -> None:
        alert = AlertFactory().create_alert("7", "Low Blood Saturation: 91.0", 5)

        assert alert == Alert(patient_id="7", condition="Low Blood Saturation: 91.0", timestamp=5)

    @pytest.mark.parametrize(
        "factory,prefix",
        [
            (BloodPressureAlertFactory(), "Blood Pressure: "),
            (BloodOxygenAlertFactory(), "Blood Oxygen: "),
            (ECGAlertFactory(), "ECG: "),
            (CombinedAlertFactory(), "Combined: "),
            (ManualAlertFactory(), "Manual: "),
        ],
    )
    def test_family_factories_prefix_label(self, factory: AlertFactory, prefix: str) -> None:
        alert = factory.create_alert("1", "Something", 10)

        assert alert.condition == f"{prefix}Something"
        assert alert.patient_id == "1"
        assert alert.timestamp == 10

    def test_factory_for_covers_every_family(self) -> None:
        for family in AlertFamily:
            assert factory_for(family).label

        assert isinstance(factory_for(AlertFamily.ECG), ECGAlertFactory)


class TestPriorityAlert:
    def test_prefixes_priority(self, alert: Alert) -> None:
        decorated = with_priority(alert, 2)

        assert isinstance(decorated, PriorityAlert)
        assert decorated.condition == "[Priority 2] Test Condition"
        assert decorated.patient_id == "1"
        assert decorated.timestamp == 1_000

    def test_does_not_touch_wrapped_alert(self, alert: Alert) -> None:
        with_priority(alert, 1)
        assert alert.condition == "Test Condition"


class TestRepeatedAlert:
    def test_prefixes_repeated(self, alert: Alert) -> None:
        decorated = as_repeated(alert, clock=FakeClock(1_000))

        assert isinstance(decorated, RepeatedAlert)
        assert decorated.condition == "[Repeated] Test Condition"
        assert decorated.timestamp == 1_000

    def test_last_triggered_starts_at_alert_timestamp(self, alert: Alert) -> None:
        assert as_repeated(alert, clock=FakeClock()).last_triggered_ms == 1_000

    def test_should_repeat_after_interval(self, alert: Alert) -> None:
        clock = FakeClock(1_000)
        decorated = as_repeated(alert, repeat_interval_ms=500, clock=clock)

        assert not decorated.should_repeat()

        clock.now = 1_499
        assert not decorated.should_repeat()

        clock.now = 1_500
        assert decorated.should_repeat()

    def test_update_last_triggered_resets_interval(self, alert: Alert) -> None:
        clock = FakeClock(5_000)
        decorated = as_repeated(alert, repeat_interval_ms=500, clock=clock)
        assert decorated.should_repeat()

        decorated.update_last_triggered_time()
        assert decorated.last_triggered_ms == 5_000
        assert not decorated.should_repeat()


class TestComposition:
    def test_decorators_nest(self, alert: Alert) -> None:
        decorated = as_repeated(with_priority(alert, 1), clock=FakeClock())

        assert decorated.condition == "[Repeated] [Priority 1] Test Condition"
        assert decorated.patient_id == alert.patient_id
        assert decorated.timestamp == alert.timestamp

    def test_unwrap_returns_base_alert(self, alert: Alert) -> None:
        decorated = with_priority(as_repeated(with_priority(alert, 3), clock=FakeClock()), 1)

        assert unwrap(decorated) is alert
        assert unwrap(alert) is alert
