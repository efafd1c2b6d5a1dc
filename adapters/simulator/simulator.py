"""
Health data simulator.

The simulator is an ordinary object built from an explicit SimulationContext,
so several independent simulations (or tests) can run side by side.
"""

import asyncio
import random
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from adapters.outputs.sinks import (
    BroadcastOutput,
    ConsoleOutput,
    FileOutput,
    OutputStrategy,
    StorageOutput,
)
from adapters.outputs.tcp import TcpOutput
from adapters.simulator.generators import (
    AlertGenerator,
    BloodPressureDataGenerator,
    BloodSaturationDataGenerator,
    ECGDataGenerator,
    PatientDataGenerator,
)
from vitalwatch.config import OutputConfig, SimulatorConfig
from vitalwatch.domain.decorators import current_time_millis
from vitalwatch.services.storage import DataStorage

logger = structlog.get_logger(__name__)


@dataclass
class SimulationContext:
    """Everything a simulation run depends on."""

    config: SimulatorConfig = field(default_factory=SimulatorConfig)
    outputs: list[OutputStrategy] = field(default_factory=list)
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], int] = current_time_millis

    def __post_init__(self) -> None:
        if self.config.seed is not None:
            self.rng.seed(self.config.seed)


def build_outputs(config: OutputConfig, storage: DataStorage | None = None) -> list[OutputStrategy]:
    """Create the sink selected by the output configuration."""
    if config.mode == "console":
        return [ConsoleOutput()]
    if config.mode == "file":
        return [FileOutput(config.file_directory)]
    if config.mode == "tcp":
        return [TcpOutput(config.tcp_host, config.tcp_port)]
    if storage is None:
        raise ValueError("Storage output mode needs a DataStorage")
    return [StorageOutput(storage)]


class HealthDataSimulator:
    """Drives every generator for every patient, one cycle at a time."""

    def __init__(
        self,
        context: SimulationContext,
        generators: list[PatientDataGenerator] | None = None,
    ) -> None:
        if not context.outputs:
            raise ValueError("Simulation needs at least one output")

        self.context = context
        self.patient_ids = list(range(1, context.config.patient_count + 1))
        self.generators = generators if generators is not None else self._default_generators()
        self.output: OutputStrategy = (
            context.outputs[0] if len(context.outputs) == 1 else BroadcastOutput(context.outputs)
        )
        self.cycles_completed = 0
        self.logger = logger.bind(component="health_data_simulator")
        self._is_running = False

    def _default_generators(self) -> list[PatientDataGenerator]:
        count = self.context.config.patient_count
        rng = self.context.rng
        clock = self.context.clock
        return [
            ECGDataGenerator(count, rng, clock),
            BloodSaturationDataGenerator(count, rng, clock),
            BloodPressureDataGenerator(count, rng, clock),
            AlertGenerator(count, rng, clock),
        ]

    def run_cycle(self) -> None:
        """One sample per patient per generator."""
        for patient_id in self.patient_ids:
            for generator in self.generators:
                generator.generate(patient_id, self.output)
        self.cycles_completed += 1

    async def run(self, cycles: int | None = None) -> None:
        """
        Run cycles spaced by the configured interval.

        ``cycles=None`` keeps going until stop() is called.
        """
        interval = self.context.config.cycle_interval_seconds
        self.logger.info(
            "simulation_starting", patients=len(self.patient_ids), cycles=cycles, interval=interval
        )
        self._is_running = True
        completed = 0
        try:
            while self._is_running and (cycles is None or completed < cycles):
                self.run_cycle()
                completed += 1
                if cycles is None or completed < cycles:
                    await asyncio.sleep(interval)
        finally:
            self._is_running = False
            self.logger.info("simulation_stopped", cycles_completed=completed)

    def stop(self) -> None:
        self._is_running = False
