"""
Per-signal data generators.

Each generator keeps a little state per patient (a baseline, a phase, an
alert flag) and emits one sample per call through an output sink. Randomness
and time both come from the caller so runs can be replayed.
"""

import math
import random
from collections.abc import Callable
from typing import Protocol

from adapters.outputs.sinks import OutputStrategy


class PatientDataGenerator(Protocol):
    def generate(self, patient_id: int, output: OutputStrategy) -> None: ...


class ECGDataGenerator:
    """
    Synthetic ECG trace.

    A narrow spike once per beat on top of a small oscillation and noise. The
    heart rate is drawn per patient between 60 and 90 bpm.
    """

    label = "ECG"

    def __init__(self, patient_count: int, rng: random.Random, clock: Callable[[], int]) -> None:
        self.rng = rng
        self.clock = clock
        self._heart_rates = {i: rng.uniform(60.0, 90.0) for i in range(1, patient_count + 1)}

    def generate(self, patient_id: int, output: OutputStrategy) -> None:
        timestamp = self.clock()
        value = self._sample(patient_id, timestamp)
        output.output(patient_id, timestamp, self.label, str(value))

    def _sample(self, patient_id: int, timestamp: int) -> float:
        heart_rate = self._heart_rates.setdefault(patient_id, self.rng.uniform(60.0, 90.0))
        beat_ms = 60_000.0 / heart_rate
        phase = (timestamp % beat_ms) / beat_ms

        value = 0.1 * math.sin(2 * math.pi * phase) + self.rng.gauss(0.0, 0.02)
        if phase < 0.05:
            value += 1.0
        return round(value, 4)


class BloodSaturationDataGenerator:
    """SpO2 drifting by at most one point per sample, kept within 90..100."""

    label = "Saturation"

    def __init__(self, patient_count: int, rng: random.Random, clock: Callable[[], int]) -> None:
        self.rng = rng
        self.clock = clock
        self._last_values = {i: 95 + rng.randint(0, 5) for i in range(1, patient_count + 1)}

    def generate(self, patient_id: int, output: OutputStrategy) -> None:
        baseline = self._last_values.setdefault(patient_id, 95 + self.rng.randint(0, 5))
        value = min(max(baseline + self.rng.randint(-1, 1), 90), 100)
        self._last_values[patient_id] = value
        output.output(patient_id, self.clock(), self.label, f"{float(value)}%")


class BloodPressureDataGenerator:
    """Systolic/diastolic pair wandering around a per-patient baseline."""

    label = "BloodPressure"

    def __init__(self, patient_count: int, rng: random.Random, clock: Callable[[], int]) -> None:
        self.rng = rng
        self.clock = clock
        self._baselines = {i: self._new_baseline() for i in range(1, patient_count + 1)}

    def _new_baseline(self) -> tuple[int, int]:
        return self.rng.randint(110, 130), self.rng.randint(70, 85)

    def generate(self, patient_id: int, output: OutputStrategy) -> None:
        systolic, diastolic = self._baselines.setdefault(patient_id, self._new_baseline())
        systolic = min(max(systolic + self.rng.randint(-3, 3), 70), 200)
        diastolic = min(max(diastolic + self.rng.randint(-2, 2), 40), 130)
        self._baselines[patient_id] = (systolic, diastolic)
        output.output(patient_id, self.clock(), self.label, f"{systolic}/{diastolic}")


class AlertGenerator:
    """
    Manual alert button presses.

    Each patient is either in an active or a resolved state. An active alert
    resolves with probability 0.9 per call; otherwise a new alert triggers with
    probability ``1 - exp(-rate)``. Only state changes are emitted.
    """

    label = "Alert"
    resolution_probability = 0.9
    trigger_rate = 0.1

    def __init__(self, patient_count: int, rng: random.Random, clock: Callable[[], int]) -> None:
        self.rng = rng
        self.clock = clock
        self._active = dict.fromkeys(range(1, patient_count + 1), False)

    @classmethod
    def trigger_probability(cls) -> float:
        return -math.expm1(-cls.trigger_rate)

    def is_active(self, patient_id: int) -> bool:
        return self._active.get(patient_id, False)

    def generate(self, patient_id: int, output: OutputStrategy) -> None:
        if self.is_active(patient_id):
            if self.rng.random() < self.resolution_probability:
                self._active[patient_id] = False
                output.output(patient_id, self.clock(), self.label, "resolved")
        elif self.rng.random() < self.trigger_probability():
            self._active[patient_id] = True
            output.output(patient_id, self.clock(), self.label, "triggered")
