"""
Output sinks for generated telemetry.

A sink receives one labelled sample at a time::

    output(patient_id, timestamp, label, data)

``data`` is the raw string a device would emit (``"120/80"``, ``"97.0%"``,
``"triggered"``). Sinks never raise on I/O trouble: a lost sample is logged
and the simulation keeps going.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

import structlog
from rich.console import Console

from vitalwatch.services.storage import DataStorage
from vitalwatch.services.telemetry_file import format_telemetry_line, parse_data_field

logger = structlog.get_logger(__name__)


class OutputStrategy(Protocol):
    """Destination for generated samples."""

    def output(self, patient_id: int, timestamp: int, label: str, data: str) -> None: ...


class ConsoleOutput:
    """Prints every sample as a telemetry line."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def output(self, patient_id: int, timestamp: int, label: str, data: str) -> None:
        self.console.print(
            format_telemetry_line(patient_id, timestamp, label, data),
            markup=False,
            highlight=False,
        )


class FileOutput:
    """Appends samples to ``{label}.txt`` files under a base directory."""

    def __init__(self, base_directory: str | Path) -> None:
        self.base_directory = Path(base_directory)
        self.logger = logger.bind(component="file_output", directory=str(self.base_directory))
        self._paths: dict[str, Path] = {}

    def path_for(self, label: str) -> Path:
        path = self._paths.get(label)
        if path is None:
            path = self.base_directory / f"{label}.txt"
            self._paths[label] = path
        return path

    def output(self, patient_id: int, timestamp: int, label: str, data: str) -> None:
        try:
            self.base_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error("output_directory_create_failed", error=str(e))
            return

        path = self.path_for(label)
        try:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(format_telemetry_line(patient_id, timestamp, label, data) + "\n")
        except OSError as e:
            self.logger.error("output_write_failed", file=str(path), error=str(e))


class StorageOutput:
    """Parses samples into records and appends them straight to a repository."""

    def __init__(self, storage: DataStorage) -> None:
        self.storage = storage
        self.logger = logger.bind(component="storage_output")
        self.rejected_samples = 0

    def output(self, patient_id: int, timestamp: int, label: str, data: str) -> None:
        try:
            records = parse_data_field(patient_id, timestamp, label, data)
        except ValueError as e:
            self.rejected_samples += 1
            self.logger.warning(
                "sample_rejected", patient_id=patient_id, label=label, error=str(e)
            )
            return
        self.storage.add_records(records)


class BroadcastOutput:
    """Fans one sample out to several sinks."""

    def __init__(self, outputs: Iterable[OutputStrategy]) -> None:
        self.outputs = list(outputs)

    def output(self, patient_id: int, timestamp: int, label: str, data: str) -> None:
        for sink in self.outputs:
            sink.output(patient_id, timestamp, label, data)
