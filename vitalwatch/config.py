"""
Configuration management with environment variable support and validation.

Design principles:
- Every clinical threshold is a validated value, not a module constant
- Validation at startup (fail fast)
- Type safety with Pydantic
- Environment overrides for anything an operator may need to tune
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from vitalwatch.domain.models import AlertFamily

# Load environment variables from .env file
load_dotenv()


class RuleThresholds(BaseModel):
    """Clinical thresholds used by the rule strategies."""

    systolic_critical_high: float = Field(default=180.0, description="Systolic high limit")
    systolic_critical_low: float = Field(default=90.0, description="Systolic low limit")
    diastolic_critical_high: float = Field(default=120.0, description="Diastolic high limit")
    diastolic_critical_low: float = Field(default=60.0, description="Diastolic low limit")

    bp_trend_change: float = Field(
        default=10.0, gt=0.0, description="Minimum change between consecutive trend readings"
    )
    bp_trend_readings: int = Field(
        default=3, ge=2, description="Number of consecutive readings in a trend window"
    )

    saturation_low: float = Field(default=92.0, description="Low blood saturation limit")
    saturation_rapid_drop: float = Field(
        default=5.0, gt=0.0, description="Percentage points that count as a rapid drop"
    )
    saturation_drop_window_ms: int = Field(
        default=10 * 60 * 1000, gt=0, description="Look-back window for rapid drops"
    )

    ecg_window_size: int = Field(default=10, gt=0, description="ECG sliding window size")
    ecg_peak_factor: float = Field(
        default=3.0, gt=0.0, description="Peak must exceed this multiple of the window mean"
    )
    ecg_zero_baseline_limit: float = Field(
        default=1.0, ge=0.0, description="Peak limit when the window mean is exactly zero"
    )

    @model_validator(mode="after")
    def limits_are_ordered(self) -> "RuleThresholds":
        if self.systolic_critical_low >= self.systolic_critical_high:
            raise ValueError("systolic low limit must be below the high limit")
        if self.diastolic_critical_low >= self.diastolic_critical_high:
            raise ValueError("diastolic low limit must be below the high limit")
        return self


class EngineConfig(BaseModel):
    """Rule engine configuration."""

    thresholds: RuleThresholds = Field(default_factory=RuleThresholds)
    tag_alert_families: bool = Field(
        default=False, description="Prefix alert conditions with their family label"
    )


class AlertPolicyConfig(BaseModel):
    """How the monitoring service post-processes engine alerts."""

    repeat_interval_ms: int = Field(
        default=5 * 60 * 1000, gt=0, description="Quiet period before an alert may repeat"
    )
    suppress_repeats: bool = Field(default=True, description="Suppress identical alerts")
    family_priorities: dict[AlertFamily, int] = Field(
        default_factory=lambda: {
            AlertFamily.COMBINED: 1,
            AlertFamily.MANUAL: 1,
            AlertFamily.BLOOD_PRESSURE: 2,
            AlertFamily.BLOOD_OXYGEN: 2,
            AlertFamily.ECG: 3,
        },
        description="Priority level per family; families left out are not prioritised",
    )


class SimulatorConfig(BaseModel):
    """Synthetic telemetry generation."""

    patient_count: int = Field(default=10, gt=0, description="Number of simulated patients")
    cycle_interval_seconds: float = Field(
        default=1.0, ge=0.0, description="Pause between generation cycles"
    )
    seed: int | None = Field(default=None, description="Random seed for reproducible runs")


class OutputConfig(BaseModel):
    """Where simulated telemetry goes."""

    mode: Literal["console", "file", "tcp", "storage"] = Field(
        default="storage", description="Output sink"
    )
    file_directory: str = Field(default="./output", description="Directory for file output")
    tcp_host: str = Field(default="127.0.0.1", description="TCP output bind host")
    tcp_port: int = Field(default=8888, gt=0, lt=65536, description="TCP output port")


class IngestionConfig(BaseModel):
    """Record sources feeding the repository."""

    data_directory: str | None = Field(default=None, description="Telemetry file directory")
    collection_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for one source collection"
    )
    evaluation_interval_seconds: float = Field(
        default=5.0, gt=0.0, description="Interval between monitoring cycles"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    engine: EngineConfig = Field(default_factory=EngineConfig)
    alert_policy: AlertPolicyConfig = Field(default_factory=AlertPolicyConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    def _output_mode(val: str) -> Literal["console", "file", "tcp", "storage"]:
        v = val.strip().lower()
        return cast(
            Literal["console", "file", "tcp", "storage"],
            v if v in {"console", "file", "tcp", "storage"} else "storage",
        )

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    thresholds = RuleThresholds(
        systolic_critical_high=_env_float("SYSTOLIC_CRITICAL_HIGH", 180.0),
        systolic_critical_low=_env_float("SYSTOLIC_CRITICAL_LOW", 90.0),
        diastolic_critical_high=_env_float("DIASTOLIC_CRITICAL_HIGH", 120.0),
        diastolic_critical_low=_env_float("DIASTOLIC_CRITICAL_LOW", 60.0),
        saturation_low=_env_float("SATURATION_LOW", 92.0),
        ecg_window_size=_env_int("ECG_WINDOW_SIZE", 10),
    )

    engine_config = EngineConfig(
        thresholds=thresholds,
        tag_alert_families=_parse_bool(os.getenv("TAG_ALERT_FAMILIES"), False),
    )

    alert_policy = AlertPolicyConfig(
        repeat_interval_ms=_env_int("ALERT_REPEAT_INTERVAL_MS", 5 * 60 * 1000),
        suppress_repeats=_parse_bool(os.getenv("SUPPRESS_REPEATED_ALERTS"), True),
    )

    seed = os.getenv("SIMULATOR_SEED")
    simulator_config = SimulatorConfig(
        patient_count=_env_int("SIMULATOR_PATIENT_COUNT", 10),
        cycle_interval_seconds=_env_float("SIMULATOR_CYCLE_INTERVAL_SECONDS", 1.0),
        seed=int(seed) if seed else None,
    )

    output_config = OutputConfig(
        mode=_output_mode(os.getenv("OUTPUT_MODE", "storage")),
        file_directory=os.getenv("OUTPUT_DIRECTORY", "./output"),
        tcp_host=os.getenv("OUTPUT_TCP_HOST", "127.0.0.1"),
        tcp_port=_env_int("OUTPUT_TCP_PORT", 8888),
    )

    ingestion_config = IngestionConfig(
        data_directory=os.getenv("DATA_DIRECTORY") or None,
        collection_timeout_seconds=_env_float("COLLECTION_TIMEOUT_SECONDS", 10.0),
        evaluation_interval_seconds=_env_float("EVALUATION_INTERVAL_SECONDS", 5.0),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        engine=engine_config,
        alert_policy=alert_policy,
        simulator=simulator_config,
        output=output_config,
        ingestion=ingestion_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def reset_config_cache() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    get_config.cache_clear()


def configure_logging(config: LoggingConfig) -> None:
    """Configure structlog for the whole process."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, config.level)),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()
    thresholds = config.engine.thresholds

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nRULE THRESHOLDS")
    print(
        f"Systolic: {thresholds.systolic_critical_low}-{thresholds.systolic_critical_high} mmHg"
    )
    print(
        f"Diastolic: {thresholds.diastolic_critical_low}-{thresholds.diastolic_critical_high} mmHg"
    )
    print(f"Saturation Low: {thresholds.saturation_low}%")
    print(f"ECG Window: {thresholds.ecg_window_size} readings")

    print("\nALERT POLICY")
    print(f"Repeat Interval: {config.alert_policy.repeat_interval_ms / 1000:.0f}s")
    print(f"Suppress Repeats: {config.alert_policy.suppress_repeats}")

    print("\nSIMULATOR")
    print(f"Patients: {config.simulator.patient_count}")
    print(f"Output: {config.output.mode}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
