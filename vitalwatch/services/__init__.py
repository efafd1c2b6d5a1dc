"""
Core services for the application.

This package contains the record repository, record collection, the rule
strategies and engine, and the monitoring service that drives them.
"""

from .monitoring import AlertEvent, AlertManager, MonitoringReport, MonitoringService
from .record_collector import RecordCollector, RecordCollectorConfig, RecordSource, Result
from .rule_engine import RuleEngine
from .storage import DataStorage, Patient
from .strategies import (
    AlertStrategy,
    BloodOxygenStrategy,
    BloodPressureStrategy,
    CombinedStrategy,
    ECGStrategy,
    ManualOverrideStrategy,
)
from .telemetry_file import FileTelemetrySource, parse_telemetry_line

__all__ = [
    "AlertEvent",
    "AlertManager",
    "AlertStrategy",
    "BloodOxygenStrategy",
    "BloodPressureStrategy",
    "CombinedStrategy",
    "DataStorage",
    "ECGStrategy",
    "FileTelemetrySource",
    "ManualOverrideStrategy",
    "MonitoringReport",
    "MonitoringService",
    "Patient",
    "RecordCollector",
    "RecordCollectorConfig",
    "RecordSource",
    "Result",
    "RuleEngine",
    "parse_telemetry_line",
]
