"""
Rule engine behaviour over whole patients.

The scenarios mirror how a ward would feed the engine: records land in the
repository in arrival order and the engine evaluates one patient at a time.
"""

import random
import time

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from vitalwatch.config import EngineConfig
from vitalwatch.domain.models import Alert, AlertFamily, MeasurementRecord, RecordCategory
from vitalwatch.services.rule_engine import RuleEngine
from vitalwatch.services.storage import DataStorage, Patient

SYS = RecordCategory.BLOOD_PRESSURE_SYSTOLIC.value
DIA = RecordCategory.BLOOD_PRESSURE_DIASTOLIC.value
SAT = RecordCategory.BLOOD_SATURATION.value
ECG = RecordCategory.ECG.value
MANUAL = RecordCategory.MANUAL_OVERRIDE.value

T0 = 1_700_000_000_000
SECOND_MS = 1_000
MINUTE_MS = 60 * SECOND_MS


@pytest.fixture
def engine() -> RuleEngine:
    return RuleEngine()


@pytest.fixture
def storage() -> DataStorage:
    return DataStorage()


def conditions(alerts: list[Alert]) -> list[str]:
    return [a.condition for a in alerts]


def evaluate(engine: RuleEngine, storage: DataStorage, patient_id: int = 1) -> list[Alert]:
    return engine.evaluate(storage.get_patient(patient_id))


class TestBloodPressureScenarios:
    def test_critical_systolic_high(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 181, SYS, T0)
        storage.add_patient_data(1, 80, DIA, T0)

        alerts = evaluate(engine, storage)

        assert len(alerts) == 1
        assert alerts[0].condition.startswith("Critical Systolic High")
        assert alerts[0].patient_id == "1"
        assert alerts[0].timestamp == T0

    def test_critical_systolic_low(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 89, SYS, T0)
        storage.add_patient_data(1, 80, DIA, T0)

        alerts = evaluate(engine, storage)

        assert len(alerts) == 1
        assert alerts[0].condition.startswith("Critical Systolic Low")

    @pytest.mark.parametrize(
        "diastolic,expected",
        [(121, "Critical Diastolic High"), (59, "Critical Diastolic Low")],
    )
    def test_critical_diastolic(
        self, engine: RuleEngine, storage: DataStorage, diastolic: float, expected: str
    ) -> None:
        storage.add_patient_data(1, 120, SYS, T0)
        storage.add_patient_data(1, diastolic, DIA, T0)

        alerts = evaluate(engine, storage)

        assert len(alerts) == 1
        assert alerts[0].condition.startswith(expected)

    @pytest.mark.parametrize(
        "values,expected",
        [
            ([100, 115, 130], ["Systolic Increasing Trend"]),
            ([130, 115, 100], ["Systolic Decreasing Trend"]),
            ([100, 105, 110], []),
        ],
    )
    def test_systolic_trends(
        self, engine: RuleEngine, storage: DataStorage, values: list[float], expected: list[str]
    ) -> None:
        for i, value in enumerate(values):
            storage.add_patient_data(1, value, SYS, T0 + i * SECOND_MS)

        alerts = evaluate(engine, storage)

        assert [c for c in conditions(alerts) if "Trend" in c] == expected
        if expected:
            assert alerts[0].timestamp == T0 + 2 * SECOND_MS


class TestBloodOxygenScenarios:
    def test_low_saturation(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 91, SAT, T0)

        alerts = evaluate(engine, storage)

        assert len(alerts) == 1
        assert alerts[0].condition.startswith("Low Blood Saturation")

    def test_rapid_drop_within_window(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 98, SAT, T0)
        storage.add_patient_data(1, 92, SAT, T0 + 9 * MINUTE_MS + 59 * SECOND_MS)

        assert conditions(evaluate(engine, storage)) == ["Rapid Blood Saturation Drop"]

    def test_drop_outside_window(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 98, SAT, T0)
        storage.add_patient_data(1, 92, SAT, T0 + 11 * MINUTE_MS)

        assert evaluate(engine, storage) == []


def test_hypotensive_hypoxemia_scenario(engine: RuleEngine, storage: DataStorage) -> None:
    storage.add_patient_data(1, 89, SYS, T0 - SECOND_MS)
    storage.add_patient_data(1, 80, DIA, T0 - SECOND_MS)
    storage.add_patient_data(1, 91, SAT, T0)

    alerts = evaluate(engine, storage)

    assert len(alerts) == 3
    assert alerts[0].condition.startswith("Critical Systolic Low")
    assert alerts[1].condition.startswith("Low Blood Saturation")
    assert alerts[2].condition == "Hypotensive Hypoxemia Alert"
    assert alerts[2].timestamp == T0


class TestECGScenarios:
    def test_peak(self, engine: RuleEngine, storage: DataStorage) -> None:
        for i in range(9):
            storage.add_patient_data(1, 0.5, ECG, T0 + i)
        storage.add_patient_data(1, 2.0, ECG, T0 + 9)

        alerts = evaluate(engine, storage)

        assert len(alerts) == 1
        assert alerts[0].condition.startswith("Abnormal ECG Peak")

    def test_zero_baseline(self, engine: RuleEngine, storage: DataStorage) -> None:
        for i in range(9):
            storage.add_patient_data(1, 0.0, ECG, T0 + i)
        storage.add_patient_data(1, 1.5, ECG, T0 + 9)

        alerts = evaluate(engine, storage)

        assert len(alerts) == 1
        assert alerts[0].condition.startswith("Abnormal ECG Activity (from zero baseline)")

    def test_not_enough_readings(self, engine: RuleEngine, storage: DataStorage) -> None:
        for i in range(8):
            storage.add_patient_data(1, 0.0, ECG, T0 + i)
        storage.add_patient_data(1, 100.0, ECG, T0 + 8)

        assert evaluate(engine, storage) == []


@pytest.mark.parametrize("value,expected", [(1.0, ["Manual Alert Triggered"]), (0.0, [])])
def test_manual_override(
    engine: RuleEngine, storage: DataStorage, value: float, expected: list[str]
) -> None:
    storage.add_patient_data(1, value, MANUAL, T0)

    assert conditions(evaluate(engine, storage)) == expected


def test_normal_vitals_produce_no_alerts(engine: RuleEngine, storage: DataStorage) -> None:
    storage.add_patient_data(1, 120, SYS, T0)
    storage.add_patient_data(1, 80, DIA, T0)
    storage.add_patient_data(1, 98, SAT, T0)
    for i in range(12):
        storage.add_patient_data(1, 0.5, ECG, T0 + i)

    assert evaluate(engine, storage) == []


class TestEngineContract:
    def test_missing_patient_yields_nothing(self, engine: RuleEngine) -> None:
        assert engine.evaluate(None) == []
        assert engine.evaluate_by_family(None) == {}

    def test_patient_without_records(self, engine: RuleEngine) -> None:
        assert engine.evaluate(Patient(5)) == []

    def test_unknown_categories_are_ignored(
        self, engine: RuleEngine, storage: DataStorage
    ) -> None:
        storage.add_patient_data(1, 250.0, "HeartRate", T0)
        assert evaluate(engine, storage) == []

    def test_arrival_order_does_not_matter(self, engine: RuleEngine) -> None:
        # Stored out of order; the engine sorts its own snapshot.
        patient = Patient(1)
        patient.add_record(130, SYS, T0 + 2 * SECOND_MS)
        patient.add_record(100, SYS, T0)
        patient.add_record(115, SYS, T0 + SECOND_MS)

        assert conditions(engine.evaluate(patient)) == ["Systolic Increasing Trend"]
        # Storage itself is untouched.
        assert [r.value for r in patient.all_records()] == [130, 100, 115]

    def test_repeated_evaluation_is_stateless(
        self, engine: RuleEngine, storage: DataStorage
    ) -> None:
        storage.add_patient_data(1, 181, SYS, T0)

        first = evaluate(engine, storage)
        second = evaluate(engine, storage)

        assert first == second
        assert len(second) == 1

    def test_strategy_order(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 1.0, MANUAL, T0)
        for i in range(9):
            storage.add_patient_data(1, 0.5, ECG, T0 + i)
        storage.add_patient_data(1, 2.0, ECG, T0 + 9)
        storage.add_patient_data(1, 89, SYS, T0)
        storage.add_patient_data(1, 91, SAT, T0)

        by_family = engine.evaluate_by_family(storage.get_patient(1))

        assert list(by_family) == [
            AlertFamily.BLOOD_PRESSURE,
            AlertFamily.BLOOD_OXYGEN,
            AlertFamily.COMBINED,
            AlertFamily.ECG,
            AlertFamily.MANUAL,
        ]
        flat = [a for alerts in by_family.values() for a in alerts]
        assert flat == engine.evaluate(storage.get_patient(1))
        assert flat[-1].condition == "Manual Alert Triggered"

    def test_evaluate_records_matches_patient_evaluation(
        self, engine: RuleEngine, storage: DataStorage
    ) -> None:
        storage.add_patient_data(1, 91, SAT, T0)
        patient = storage.get_patient(1)
        assert patient is not None

        assert engine.evaluate_records(1, patient.all_records()) == engine.evaluate(patient)

    def test_family_tagging(self, storage: DataStorage) -> None:
        engine = RuleEngine(EngineConfig(tag_alert_families=True))
        storage.add_patient_data(1, 89, SYS, T0)
        storage.add_patient_data(1, 91, SAT, T0)

        assert conditions(evaluate(engine, storage)) == [
            "Blood Pressure: Critical Systolic Low: 89.0",
            "Blood Oxygen: Low Blood Saturation: 91.0",
            "Combined: Hypotensive Hypoxemia Alert",
        ]


class TestBatchEvaluation:
    def test_each_patient_gets_a_result(self, engine: RuleEngine, storage: DataStorage) -> None:
        storage.add_patient_data(1, 181, SYS, T0)
        storage.add_patient_data(2, 98, SAT, T0)

        results = engine.evaluate_all(storage.get_all_patients())

        assert set(results) == {1, 2}
        assert conditions(results[1].unwrap()) == ["Critical Systolic High: 181.0"]
        assert results[2].unwrap() == []

    def test_failure_is_isolated_to_one_patient(
        self, engine: RuleEngine, storage: DataStorage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        storage.add_patient_data(1, 181, SYS, T0)
        storage.add_patient_data(2, 182, SYS, T0)
        broken = storage.get_patient(2)
        assert broken is not None

        def explode() -> list[MeasurementRecord]:
            raise RuntimeError("corrupt history")

        monkeypatch.setattr(broken, "all_records", explode)

        results = engine.evaluate_all(storage.get_all_patients())

        assert results[1].is_ok()
        assert results[2].is_err()
        assert isinstance(results[2].unwrap_err(), RuntimeError)


record_strategy = st.builds(
    MeasurementRecord,
    patient_id=st.just(1),
    value=st.floats(min_value=-10.0, max_value=250.0, allow_nan=False),
    category=st.sampled_from([SYS, DIA, SAT, ECG, MANUAL]),
    timestamp=st.integers(min_value=0, max_value=3_600_000),
)


@settings(max_examples=50, deadline=None)
@given(records=st.lists(record_strategy, max_size=40), seed=st.integers())
def test_evaluation_is_a_function_of_the_record_set(
    records: list[MeasurementRecord], seed: int
) -> None:
    """Property: shuffling arrival order never changes the alerts."""
    # Unique timestamps keep the sorted order fully determined.
    unique = list({r.timestamp: r for r in records}.values())
    shuffled = unique[:]
    random.Random(seed).shuffle(shuffled)

    engine = RuleEngine()

    assert engine.evaluate_records(1, unique) == engine.evaluate_records(1, shuffled)
    assert engine.evaluate_records(1, unique) == engine.evaluate_records(1, unique)


class TestPerformanceRegression:
    """Performance regression tests with realistic baselines."""

    @pytest.mark.performance
    def test_ward_evaluation_baseline(self) -> None:
        storage = DataStorage()
        for patient_id in range(1, 101):
            for i in range(200):
                ts = T0 + i * SECOND_MS
                storage.add_patient_data(patient_id, 120 + (i % 5), SYS, ts)
                storage.add_patient_data(patient_id, 80 - (i % 3), DIA, ts)
                storage.add_patient_data(patient_id, 97, SAT, ts)
                storage.add_patient_data(patient_id, 0.5, ECG, ts)

        engine = RuleEngine()
        start = time.perf_counter()
        results = engine.evaluate_all(storage.get_all_patients())
        duration = time.perf_counter() - start

        assert all(r.unwrap() == [] for r in results.values())
        assert duration < 5.0, f"Evaluation took too long: {duration:.3f}s"
