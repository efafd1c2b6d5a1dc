"""
Record collection from multiple telemetry sources.

Key patterns:
- Protocol-based sources (file readers, simulators, test doubles)
- Generic Result type for expected failures
- Structured concurrency with asyncio.TaskGroup and per-source timeouts
- Partial failures are logged and skipped, never fatal
"""

import asyncio
import time
from typing import Generic, Protocol, TypeVar

import structlog
from pydantic import BaseModel, Field

from vitalwatch.domain.models import MeasurementRecord
from vitalwatch.services.storage import DataStorage

logger = structlog.get_logger(__name__)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Makes error paths visible in the type system and forces the caller to
    decide whether to count, retry or skip.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Result.err({self._error!r})"
        return f"Result.ok({self._value!r})"


class RecordSource(Protocol):
    """
    A place measurement records come from.

    Single async method so file readers, simulators and test doubles all plug
    into the collector the same way.
    """

    source_name: str

    async def collect_records(self) -> Result[list[MeasurementRecord], Exception]:
        """Return the records gathered since the last call, or the error that stopped it."""
        ...


class RecordCollectorConfig(BaseModel):
    """Collector tuning."""

    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout for one source collection in seconds.",
    )


class RecordCollector:
    """
    Gathers records from every registered source concurrently and appends them
    to a repository.
    """

    def __init__(self, storage: DataStorage, config: RecordCollectorConfig | None = None) -> None:
        self.storage = storage
        self.config = config or RecordCollectorConfig()
        self.sources: list[RecordSource] = []
        self.logger = logger.bind(component="record_collector")

    def add_source(self, source: RecordSource) -> None:
        if not hasattr(source, "collect_records"):
            raise TypeError(f"Source {source} must implement RecordSource protocol")
        self.sources.append(source)
        self.logger.info("source_added", source_type=type(source).__name__)

    def remove_source(self, source: RecordSource) -> None:
        self.sources.remove(source)
        self.logger.info("source_removed", source_type=type(source).__name__)

    async def _collect_from(
        self, source: RecordSource
    ) -> Result[list[MeasurementRecord], Exception]:
        try:
            return await asyncio.wait_for(
                source.collect_records(), timeout=self.config.timeout_seconds
            )
        except TimeoutError as e:
            self.logger.warning("source_collection_timeout", source=source.source_name)
            return Result.err(e)
        except Exception as e:
            self.logger.exception(
                "unexpected_source_collection_error", error=str(e), source=source.source_name
            )
            return Result.err(e)

    async def collect_once(self) -> Result[list[MeasurementRecord], Exception]:
        """
        Collect from all sources and store what arrived.

        Returns an error only when every source failed; partial failures are
        logged and the successful sources are still stored.
        """
        start_time = time.perf_counter()

        async with asyncio.TaskGroup() as task_group:
            tasks = [
                (source, task_group.create_task(self._collect_from(source)))
                for source in self.sources
            ]

        collected: list[MeasurementRecord] = []
        successful_sources = 0
        last_error: Exception | None = None
        for source, task in tasks:
            result = task.result()
            if result.is_ok():
                collected.extend(result.unwrap())
                successful_sources += 1
            else:
                last_error = result.unwrap_err()
                self.logger.warning(
                    "source_collection_failed", error=str(last_error), source=source.source_name
                )

        stored = self.storage.add_records(collected)

        self.logger.info(
            "record_collection_completed",
            stored_records=stored,
            successful_sources=successful_sources,
            total_sources=len(self.sources),
            duration_seconds=round(time.perf_counter() - start_time, 3),
        )

        if self.sources and successful_sources == 0 and last_error is not None:
            return Result.err(last_error)
        return Result.ok(collected)
