"""
End-to-end demo of the vital-sign monitoring pipeline.

Steps:
1. Configuration loading and validation
2. Simulated telemetry for a ward of patients
3. Scripted deterioration for one patient
4. Monitoring cycles with rule evaluation, priorities and repeat suppression

Run with: uv run python run_monitor.py --patients 5 --cycles 12
"""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from adapters.outputs import FileOutput, StorageOutput
from adapters.outputs.sinks import OutputStrategy
from adapters.simulator import HealthDataSimulator, SimulationContext
from vitalwatch.config import (
    AppConfig,
    SimulatorConfig,
    configure_logging,
    get_config,
    print_config_summary,
    validate_config,
)
from vitalwatch.domain.decorators import current_time_millis
from vitalwatch.services.monitoring import AlertEvent, MonitoringReport, MonitoringService
from vitalwatch.services.storage import DataStorage
from vitalwatch.services.telemetry_file import FileTelemetrySource

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the vital-sign monitoring demo")
    parser.add_argument("--patients", type=int, default=None, help="Simulated patient count")
    parser.add_argument("--cycles", type=int, default=12, help="Simulation cycles to generate")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Also write telemetry files here and ingest them back through the file reader",
    )
    parser.add_argument("--show-config", action="store_true", help="Print the configuration")
    return parser.parse_args(argv)


def inject_deterioration(storage: DataStorage, patient_id: int, start_ms: int) -> None:
    """Falling blood pressure and saturation over five minutes."""
    minute = 60_000
    for i, (systolic, diastolic, saturation) in enumerate(
        [(118, 78, 97.0), (104, 70, 95.0), (92, 64, 93.0), (86, 58, 91.0)]
    ):
        timestamp = start_ms + i * minute
        storage.add_patient_data(patient_id, systolic, "BloodPressureSystolic", timestamp)
        storage.add_patient_data(patient_id, diastolic, "BloodPressureDiastolic", timestamp)
        storage.add_patient_data(patient_id, saturation, "BloodSaturation", timestamp)
    storage.add_patient_data(patient_id, 1.0, "ManualOverride", start_ms + 4 * minute)


def render_alerts(title: str, events: list[AlertEvent]) -> None:
    table = Table(title=title)
    table.add_column("Patient", style="cyan")
    table.add_column("Family", style="magenta")
    table.add_column("Timestamp", style="white")
    table.add_column("Condition", style="yellow")

    for event in events:
        table.add_row(
            event.patient_id, event.family.value, str(event.timestamp), escape(event.condition)
        )
    console.print(table)


def render_report(report: MonitoringReport) -> None:
    summary = Table(title="Monitoring Summary")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Records Ingested", str(report.records_ingested))
    summary.add_row("Patients Evaluated", str(report.patients_evaluated))
    summary.add_row("Alerts Emitted", str(len(report.alerts)))
    summary.add_row("Alerts Suppressed", str(report.suppressed_alerts))
    summary.add_row("Failed Patients", ", ".join(map(str, report.failed_patients)) or "none")
    summary.add_row("Cycle Duration", f"{report.duration_seconds:.3f}s")
    console.print(summary)


async def run_demo(config: AppConfig, args: argparse.Namespace) -> bool:
    storage = DataStorage()
    service = MonitoringService(config, storage=storage, handlers=[])

    outputs: list[OutputStrategy] = []
    if args.output_dir:
        outputs.append(FileOutput(args.output_dir))
        service.add_source(FileTelemetrySource("telemetry-files", args.output_dir))
    else:
        outputs.append(StorageOutput(storage))

    simulator_config = SimulatorConfig(
        patient_count=args.patients or config.simulator.patient_count,
        cycle_interval_seconds=0.0,
        seed=args.seed if args.seed is not None else config.simulator.seed,
    )
    simulator = HealthDataSimulator(SimulationContext(config=simulator_config, outputs=outputs))

    console.print(Panel("Generating Telemetry", style="blue"))
    await simulator.run(cycles=args.cycles)
    console.print(
        f"Generated {args.cycles} cycles for {simulator_config.patient_count} patients",
        style="green",
    )

    deteriorating = simulator_config.patient_count + 1
    inject_deterioration(storage, deteriorating, current_time_millis())
    console.print(f"Scripted deterioration for patient {deteriorating}", style="yellow")

    console.print(Panel("Monitoring Cycle 1", style="blue"))
    first = await service.run_monitoring_cycle()
    render_alerts("Alerts", first.alerts)
    render_report(first)

    console.print(Panel("Monitoring Cycle 2 (same data)", style="blue"))
    second = await service.run_monitoring_cycle()
    render_report(second)
    if second.suppressed_alerts:
        console.print(
            f"{second.suppressed_alerts} repeated alerts held back until the repeat interval",
            style="green",
        )

    return not first.degraded


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    console.print(Panel("Vital-Sign Monitoring Demo", style="bold blue"))
    try:
        validate_config()
    except Exception as e:
        console.print(f"Configuration failed: {e}", style="red")
        return 1

    config = get_config()
    configure_logging(config.logging)
    if args.show_config:
        print_config_summary()

    ok = asyncio.run(run_demo(config, args))
    console.print(
        "Demo completed" if ok else "Demo completed with failed patients",
        style="green" if ok else "red",
    )
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
