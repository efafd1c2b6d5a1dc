"""
Telemetry file reading.

Parses the line-oriented export written by the file output sink::

    Patient ID: 1, Timestamp: 1700000000000, Label: BloodPressure, Data: 120/80

and implements the RecordSource protocol so a directory of such files can feed
the record collector. Each file is read incrementally: a second collection only
returns lines appended since the first.
"""

import asyncio
from pathlib import Path

import structlog

from vitalwatch.domain.models import MeasurementRecord, RecordCategory
from vitalwatch.services.record_collector import Result

logger = structlog.get_logger(__name__)

_LABEL_ALIASES = {
    "Saturation": RecordCategory.BLOOD_SATURATION.value,
}
_MANUAL_ALERT_STATES = {"triggered": 1.0, "resolved": 0.0}


def parse_data_field(
    patient_id: int, timestamp: int, label: str, data: str
) -> list[MeasurementRecord]:
    """
    Turn one labelled data field into records.

    Raises:
        ValueError: if the data cannot be read for the given label.
    """
    data = data.strip()

    if label == "BloodPressure":
        parts = data.split("/")
        if len(parts) != 2:
            raise ValueError(f"Blood pressure data must be 'systolic/diastolic', got {data!r}")
        systolic, diastolic = (float(p) for p in parts)
        return [
            MeasurementRecord(
                patient_id=patient_id,
                value=systolic,
                category=RecordCategory.BLOOD_PRESSURE_SYSTOLIC.value,
                timestamp=timestamp,
            ),
            MeasurementRecord(
                patient_id=patient_id,
                value=diastolic,
                category=RecordCategory.BLOOD_PRESSURE_DIASTOLIC.value,
                timestamp=timestamp,
            ),
        ]

    if label == "Alert":
        state = data.lower()
        if state not in _MANUAL_ALERT_STATES:
            raise ValueError(f"Alert data must be 'triggered' or 'resolved', got {data!r}")
        return [
            MeasurementRecord(
                patient_id=patient_id,
                value=_MANUAL_ALERT_STATES[state],
                category=RecordCategory.MANUAL_OVERRIDE.value,
                timestamp=timestamp,
            )
        ]

    category = _LABEL_ALIASES.get(label, label)
    return [
        MeasurementRecord(
            patient_id=patient_id,
            value=float(data.removesuffix("%")),
            category=category,
            timestamp=timestamp,
        )
    ]


def format_telemetry_line(patient_id: int, timestamp: int, label: str, data: str) -> str:
    return f"Patient ID: {patient_id}, Timestamp: {timestamp}, Label: {label}, Data: {data}"


def parse_telemetry_line(line: str) -> Result[list[MeasurementRecord], ValueError]:
    """Parse one export line. Malformed lines come back as an error result."""
    try:
        parts = line.strip().split(", ", 3)
        if len(parts) < 4:
            raise ValueError(f"Expected 4 fields, got {len(parts)}")

        fields: dict[str, str] = {}
        for part in parts:
            key, sep, value = part.partition(": ")
            if not sep:
                raise ValueError(f"Field without ': ' separator: {part!r}")
            fields[key] = value

        patient_id = int(fields["Patient ID"])
        timestamp = int(fields["Timestamp"])
        return Result.ok(parse_data_field(patient_id, timestamp, fields["Label"], fields["Data"]))
    except KeyError as e:
        return Result.err(ValueError(f"Missing field {e}"))
    except ValueError as e:
        return Result.err(e)


class FileTelemetrySource:
    """Reads telemetry export files from a directory."""

    def __init__(self, source_name: str, directory: str | Path, pattern: str = "*.txt") -> None:
        self.source_name = source_name
        self.directory = Path(directory)
        self.pattern = pattern
        self.logger = logger.bind(source=source_name, directory=str(self.directory))
        self._offsets: dict[Path, int] = {}
        self.skipped_lines = 0

    async def collect_records(self) -> Result[list[MeasurementRecord], Exception]:
        try:
            records = await asyncio.to_thread(self._read_new_lines)
        except OSError as e:
            self.logger.error("telemetry_directory_read_failed", error=str(e))
            return Result.err(e)

        self.logger.info("telemetry_records_read", count=len(records))
        return Result.ok(records)

    def _read_new_lines(self) -> list[MeasurementRecord]:
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Telemetry directory not found: {self.directory}")

        records: list[MeasurementRecord] = []
        for path in sorted(self.directory.glob(self.pattern)):
            if not path.is_file():
                continue
            # Binary mode: offsets are byte positions and each line decodes on its own.
            with path.open("rb") as handle:
                handle.seek(self._offsets.get(path, 0))
                while True:
                    position = handle.tell()
                    raw = handle.readline()
                    if not raw:
                        break
                    if not raw.endswith(b"\n"):
                        # Partial line still being written; pick it up next time.
                        handle.seek(position)
                        break
                    self._parse_raw_line(path, raw, records)
                self._offsets[path] = handle.tell()
        return records

    def _parse_raw_line(self, path: Path, raw: bytes, records: list[MeasurementRecord]) -> None:
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            self._skip(path, e)
            return
        if not line.strip():
            return

        result = parse_telemetry_line(line)
        if result.is_ok():
            records.extend(result.unwrap())
        else:
            self._skip(path, result.unwrap_err())

    def _skip(self, path: Path, error: Exception) -> None:
        self.skipped_lines += 1
        self.logger.warning("telemetry_line_skipped", file=path.name, error=str(error))
