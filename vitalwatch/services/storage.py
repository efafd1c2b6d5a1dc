"""
In-memory record repository keyed by patient identifier.

Records are kept in insertion order. Nothing here sorts: the rule engine takes
its own sorted snapshot per evaluation.
"""

from collections.abc import Iterable

import structlog

from vitalwatch.domain.models import MeasurementRecord

logger = structlog.get_logger(__name__)


class Patient:
    """All measurement records of one patient."""

    def __init__(self, patient_id: int) -> None:
        self.patient_id = patient_id
        self._records: list[MeasurementRecord] = []

    def add_record(self, value: float, category: str, timestamp: int) -> MeasurementRecord:
        record = MeasurementRecord(
            patient_id=self.patient_id, value=value, category=category, timestamp=timestamp
        )
        self._records.append(record)
        return record

    def all_records(self) -> list[MeasurementRecord]:
        return list(self._records)

    def get_records(self, start_time: int, end_time: int) -> list[MeasurementRecord]:
        """Records with ``start_time <= timestamp <= end_time``, in insertion order."""
        return [r for r in self._records if start_time <= r.timestamp <= end_time]

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Patient(patient_id={self.patient_id}, records={len(self._records)})"


class DataStorage:
    """Repository of patients and their records."""

    def __init__(self) -> None:
        self._patients: dict[int, Patient] = {}
        self.logger = logger.bind(component="data_storage")

    def add_patient_data(
        self, patient_id: int, value: float, category: str, timestamp: int
    ) -> MeasurementRecord:
        patient = self._patients.get(patient_id)
        if patient is None:
            patient = Patient(patient_id)
            self._patients[patient_id] = patient
            self.logger.debug("patient_registered", patient_id=patient_id)
        return patient.add_record(value, category, timestamp)

    def add_records(self, records: Iterable[MeasurementRecord]) -> int:
        """Append already-built records. Returns how many were stored."""
        count = 0
        for record in records:
            self.add_patient_data(
                record.patient_id, record.value, record.category, record.timestamp
            )
            count += 1
        return count

    def get_records(
        self, patient_id: int, start_time: int, end_time: int
    ) -> list[MeasurementRecord]:
        patient = self._patients.get(patient_id)
        if patient is None:
            return []
        return patient.get_records(start_time, end_time)

    def get_patient(self, patient_id: int) -> Patient | None:
        return self._patients.get(patient_id)

    def get_all_patients(self) -> list[Patient]:
        return list(self._patients.values())

    def clear(self) -> None:
        self._patients.clear()
