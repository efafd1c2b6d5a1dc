"""
Rule engine: runs every alert strategy over one patient's records.

Evaluation policy:
- Stateless. Each call sorts a fresh snapshot and runs every strategy over the
  whole history, so calling twice over the same records returns the same
  alerts twice. De-duplication across calls belongs to the caller (see
  AlertManager in the monitoring service).
- Deterministic. Records are stable-sorted by timestamp, strategies run in a
  fixed order and their outputs are concatenated in that order.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

import structlog

from vitalwatch.config import EngineConfig
from vitalwatch.domain.factories import AlertFactory, factory_for
from vitalwatch.domain.models import Alert, AlertFamily, MeasurementRecord
from vitalwatch.services.record_collector import Result
from vitalwatch.services.storage import Patient
from vitalwatch.services.strategies import (
    AlertStrategy,
    BloodOxygenStrategy,
    BloodPressureStrategy,
    CombinedStrategy,
    ECGStrategy,
    ManualOverrideStrategy,
)

logger = structlog.get_logger(__name__)

EvaluationT = TypeVar("EvaluationT")

STRATEGY_ORDER: tuple[type[AlertStrategy], ...] = (
    BloodPressureStrategy,
    BloodOxygenStrategy,
    CombinedStrategy,
    ECGStrategy,
    ManualOverrideStrategy,
)


def build_strategies(config: EngineConfig) -> list[AlertStrategy]:
    """Instantiate the strategy catalog in evaluation order."""
    strategies: list[AlertStrategy] = []
    for strategy_cls in STRATEGY_ORDER:
        factory = factory_for(strategy_cls.family) if config.tag_alert_families else AlertFactory()
        strategies.append(strategy_cls(config.thresholds, factory))  # type: ignore[call-arg]
    return strategies


class RuleEngine:
    """Evaluates patients against the fixed alert rule catalog."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.strategies = build_strategies(self.config)
        self.logger = logger.bind(component="rule_engine")

    def evaluate(self, patient: Patient | None) -> list[Alert]:
        """All alerts for one patient, in strategy order."""
        return [
            alert for alerts in self.evaluate_by_family(patient).values() for alert in alerts
        ]

    def evaluate_records(
        self, patient_id: int, records: Sequence[MeasurementRecord]
    ) -> list[Alert]:
        return [
            alert
            for alerts in self._run_strategies(patient_id, records).values()
            for alert in alerts
        ]

    def evaluate_by_family(self, patient: Patient | None) -> dict[AlertFamily, list[Alert]]:
        """Same pass as evaluate(), grouped by rule family in evaluation order."""
        if patient is None:
            self.logger.warning("patient_missing")
            return {}
        return self._run_strategies(patient.patient_id, patient.all_records())

    def evaluate_all(
        self, patients: Iterable[Patient]
    ) -> dict[int, Result[list[Alert], Exception]]:
        """
        Evaluate many patients, isolating each one.

        A failure while evaluating one patient becomes an error result for that
        patient; the rest of the batch still runs.
        """
        return self._isolated(patients, self.evaluate)

    def evaluate_all_by_family(
        self, patients: Iterable[Patient]
    ) -> dict[int, Result[dict[AlertFamily, list[Alert]], Exception]]:
        return self._isolated(patients, self.evaluate_by_family)

    def _isolated(
        self, patients: Iterable[Patient], evaluate: Callable[[Patient], EvaluationT]
    ) -> dict[int, Result[EvaluationT, Exception]]:
        results: dict[int, Result[EvaluationT, Exception]] = {}
        for patient in patients:
            try:
                results[patient.patient_id] = Result.ok(evaluate(patient))
            except Exception as e:
                self.logger.exception(
                    "patient_evaluation_failed", patient_id=patient.patient_id, error=str(e)
                )
                results[patient.patient_id] = Result.err(e)
        return results

    def _run_strategies(
        self, patient_id: int, records: Sequence[MeasurementRecord]
    ) -> dict[AlertFamily, list[Alert]]:
        if not records:
            return {}

        ordered = sorted(records, key=lambda r: r.timestamp)
        by_family: dict[AlertFamily, list[Alert]] = {}
        for strategy in self.strategies:
            by_family[strategy.family] = strategy.check_alerts(patient_id, ordered)

        alert_count = sum(len(alerts) for alerts in by_family.values())
        for alerts in by_family.values():
            for alert in alerts:
                self.logger.debug(
                    "alert_triggered",
                    patient_id=alert.patient_id,
                    condition=alert.condition,
                    timestamp=alert.timestamp,
                )
        self.logger.info(
            "patient_evaluated",
            patient_id=patient_id,
            records=len(ordered),
            alerts=alert_count,
        )
        return by_family
