"""
Monitoring service that ties ingestion, rule evaluation and alert dispatch together.

One monitoring cycle:
1. Collect records from every source into the repository
2. Evaluate each patient in isolation with the rule engine
3. Decorate alerts with priorities and suppress repeats
4. Dispatch the surviving alerts to handlers

The rule engine is stateless; the only state carried from one cycle to the
next is the repeat-suppression bookkeeping kept by the AlertManager.
"""

import asyncio
import time
from collections import deque
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

import structlog
from rich.console import Console
from rich.markup import escape

from vitalwatch.config import AlertPolicyConfig, AppConfig, get_config
from vitalwatch.domain.decorators import (
    RepeatedAlert,
    as_repeated,
    current_time_millis,
    unwrap,
    with_priority,
)
from vitalwatch.domain.models import Alert, AlertFamily, AlertLike
from vitalwatch.services.record_collector import (
    RecordCollector,
    RecordCollectorConfig,
    RecordSource,
)
from vitalwatch.services.rule_engine import RuleEngine
from vitalwatch.services.storage import DataStorage

logger = structlog.get_logger(__name__)

AlertHandler = Callable[["AlertEvent"], None]


@dataclass
class AlertEvent:
    """An alert that survived post-processing and should reach handlers."""

    alert: AlertLike
    family: AlertFamily
    emitted_at: int
    repeated: bool = False

    @property
    def patient_id(self) -> str:
        return self.alert.patient_id

    @property
    def condition(self) -> str:
        return self.alert.condition

    @property
    def timestamp(self) -> int:
        return self.alert.timestamp


@dataclass
class MonitoringReport:
    """Outcome of one monitoring cycle."""

    records_ingested: int
    patients_evaluated: int
    failed_patients: list[int] = field(default_factory=list)
    alerts: list[AlertEvent] = field(default_factory=list)
    suppressed_alerts: int = 0
    duration_seconds: float = 0.0

    @property
    def degraded(self) -> bool:
        return bool(self.failed_patients)


@dataclass
class _TrackedAlert:
    alert: RepeatedAlert
    last_seen_ms: int


class AlertManager:
    """Applies priority and repeat-suppression decorators, then dispatches alerts."""

    def __init__(
        self,
        policy: AlertPolicyConfig | None = None,
        clock: Callable[[], int] = current_time_millis,
    ) -> None:
        self.policy = policy or AlertPolicyConfig()
        self.clock = clock
        self.alert_history: deque[AlertEvent] = deque(maxlen=1000)
        self.logger = logger.bind(component="alert_manager")
        self._tracked: dict[tuple[str, str, int], _TrackedAlert] = {}
        self._console = Console()

    def process(
        self, alerts_by_family: dict[AlertFamily, list[Alert]]
    ) -> tuple[list[AlertEvent], int]:
        """
        Turn raw engine alerts into events.

        Returns the events to dispatch and the number of suppressed alerts.
        An alert is identified by patient, base condition and timestamp, so a
        new occurrence of the same condition is always emitted. An identical
        alert seen again is suppressed until the repeat interval has passed,
        then emitted once more with a ``[Repeated]`` prefix.
        """
        now = self.clock()
        self._evict_stale(now)

        events: list[AlertEvent] = []
        suppressed = 0

        for family, alerts in alerts_by_family.items():
            priority = self.policy.family_priorities.get(family)
            for alert in alerts:
                decorated: AlertLike = alert if priority is None else with_priority(alert, priority)

                if not self.policy.suppress_repeats:
                    events.append(self._record(decorated, family, repeated=False))
                    continue

                key = (alert.patient_id, alert.condition, alert.timestamp)
                tracked = self._tracked.get(key)
                if tracked is None:
                    repeated = as_repeated(decorated, self.policy.repeat_interval_ms, self.clock)
                    repeated.update_last_triggered_time()
                    self._tracked[key] = _TrackedAlert(repeated, now)
                    events.append(self._record(decorated, family, repeated=False))
                    continue

                tracked.last_seen_ms = now
                if tracked.alert.should_repeat():
                    repeated = as_repeated(decorated, self.policy.repeat_interval_ms, self.clock)
                    repeated.update_last_triggered_time()
                    tracked.alert = repeated
                    events.append(self._record(repeated, family, repeated=True))
                else:
                    suppressed += 1

        if suppressed:
            self.logger.debug("alerts_suppressed", count=suppressed)
        return events, suppressed

    @property
    def tracked_count(self) -> int:
        return len(self._tracked)

    def _evict_stale(self, now: int) -> None:
        """Drop alerts that have not fired for longer than the repeat interval."""
        stale = [
            key
            for key, tracked in self._tracked.items()
            if now - tracked.last_seen_ms > self.policy.repeat_interval_ms
        ]
        for key in stale:
            del self._tracked[key]
        if stale:
            self.logger.debug("tracked_alerts_evicted", count=len(stale))

    def forget_patient(self, patient_id: str) -> None:
        """Drop repeat bookkeeping for a patient, e.g. after discharge."""
        for key in [k for k in self._tracked if k[0] == patient_id]:
            del self._tracked[key]

    def _record(self, alert: AlertLike, family: AlertFamily, repeated: bool) -> AlertEvent:
        event = AlertEvent(alert=alert, family=family, emitted_at=self.clock(), repeated=repeated)
        self.alert_history.append(event)
        self.logger.info(
            "alert_generated",
            patient_id=alert.patient_id,
            family=family.value,
            condition=unwrap(alert).condition,
            repeated=repeated,
        )
        return event

    def dispatch_alerts(
        self,
        events: list[AlertEvent],
        handlers: list[AlertHandler] | None = None,
    ) -> None:
        """
        Send events to handlers; a failing handler never stops the others.

        ``None`` means the console handler; an empty list dispatches nowhere.
        """
        if not events:
            return

        if handlers is None:
            handlers = [self._console_alert_handler]

        for event in events:
            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    self.logger.error(
                        "alert_dispatch_failed", error=str(e), condition=event.condition
                    )

    def _console_alert_handler(self, event: AlertEvent) -> None:
        urgent = event.family in (AlertFamily.COMBINED, AlertFamily.MANUAL)
        style = "bold red" if urgent else "yellow"
        self._console.print(
            f"[{style}]ALERT[/{style}] patient={event.patient_id} "
            f"time={event.timestamp} {escape(event.condition)}",
            markup=True,
            highlight=False,
        )


class MonitoringService:
    """
    Runs monitoring cycles over every patient in the repository.

    Sources, the repository and alert handlers are passed in explicitly so the
    service can be driven by a simulator, a directory of export files or tests.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        storage: DataStorage | None = None,
        handlers: list[AlertHandler] | None = None,
        clock: Callable[[], int] = current_time_millis,
    ) -> None:
        self.config = config or get_config()
        self.storage = storage if storage is not None else DataStorage()
        self.handlers = handlers
        self.logger = logger.bind(component="monitoring_service")

        self.collector = RecordCollector(
            self.storage,
            RecordCollectorConfig(
                timeout_seconds=self.config.ingestion.collection_timeout_seconds
            ),
        )
        self.engine = RuleEngine(self.config.engine)
        self.alert_manager = AlertManager(self.config.alert_policy, clock)
        self._is_running = False

    def add_source(self, source: RecordSource) -> None:
        self.collector.add_source(source)

    async def run_monitoring_cycle(self) -> MonitoringReport:
        cycle_start = time.perf_counter()

        records_ingested = 0
        if self.collector.sources:
            collected = await self.collector.collect_once()
            if collected.is_ok():
                records_ingested = len(collected.unwrap())
            else:
                self.logger.warning("no_records_collected", error=str(collected.unwrap_err()))

        patients = self.storage.get_all_patients()
        results = self.engine.evaluate_all_by_family(patients)

        report = MonitoringReport(
            records_ingested=records_ingested, patients_evaluated=len(patients)
        )
        for patient_id, result in results.items():
            if result.is_err():
                report.failed_patients.append(patient_id)
                continue
            events, suppressed = self.alert_manager.process(result.unwrap())
            report.alerts.extend(events)
            report.suppressed_alerts += suppressed

        self.alert_manager.dispatch_alerts(report.alerts, self.handlers)
        report.duration_seconds = round(time.perf_counter() - cycle_start, 3)

        self.logger.info(
            "monitoring_cycle_completed",
            records_ingested=report.records_ingested,
            patients_evaluated=report.patients_evaluated,
            alerts_emitted=len(report.alerts),
            alerts_suppressed=report.suppressed_alerts,
            degraded=report.degraded,
            duration_seconds=report.duration_seconds,
        )
        return report

    async def run_continuous_monitoring(self) -> AsyncIterator[MonitoringReport]:
        """Yield one report per cycle until stop() is called."""
        interval = self.config.ingestion.evaluation_interval_seconds
        self.logger.info("continuous_monitoring_starting", interval=interval)
        self._is_running = True

        try:
            while self._is_running:
                started = time.perf_counter()
                yield await self.run_monitoring_cycle()

                sleep_time = max(0.0, interval - (time.perf_counter() - started))
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
        except asyncio.CancelledError:
            self.logger.info("continuous_monitoring_cancelled")
            raise
        finally:
            self._is_running = False

    async def stop(self) -> None:
        self.logger.info("stopping_monitoring_service")
        self._is_running = False
