"""
Composable alert decorators.

Decorating an alert never touches the wrapped value: each wrapper delegates
``patient_id`` and ``timestamp`` to the alert it wraps and builds its own
``condition``. Wrappers nest, so ``as_repeated(with_priority(alert, 1))`` reads
``"[Repeated] [Priority 1] ..."``.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from vitalwatch.domain.models import Alert, AlertLike

DEFAULT_REPEAT_INTERVAL_MS = 5 * 60 * 1000


def current_time_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class PriorityAlert:
    """Alert tagged with a numeric priority level."""

    inner: AlertLike
    priority_level: int

    @property
    def patient_id(self) -> str:
        return self.inner.patient_id

    @property
    def timestamp(self) -> int:
        return self.inner.timestamp

    @property
    def condition(self) -> str:
        return f"[Priority {self.priority_level}] {self.inner.condition}"


@dataclass
class RepeatedAlert:
    """
    Alert that tracks when it last fired so callers can suppress repeats.

    The wrapper is the only mutable piece of the alert pipeline: whoever wants
    suppression across evaluation cycles keeps the instance alive between
    cycles.
    """

    inner: AlertLike
    repeat_interval_ms: int = DEFAULT_REPEAT_INTERVAL_MS
    clock: Callable[[], int] = field(default=current_time_millis, repr=False, compare=False)
    last_triggered_ms: int = field(init=False)

    def __post_init__(self) -> None:
        self.last_triggered_ms = self.inner.timestamp

    @property
    def patient_id(self) -> str:
        return self.inner.patient_id

    @property
    def timestamp(self) -> int:
        return self.inner.timestamp

    @property
    def condition(self) -> str:
        return f"[Repeated] {self.inner.condition}"

    def should_repeat(self) -> bool:
        return self.clock() - self.last_triggered_ms >= self.repeat_interval_ms

    def update_last_triggered_time(self) -> None:
        self.last_triggered_ms = self.clock()


def with_priority(alert: AlertLike, priority_level: int) -> PriorityAlert:
    return PriorityAlert(inner=alert, priority_level=priority_level)


def as_repeated(
    alert: AlertLike,
    repeat_interval_ms: int = DEFAULT_REPEAT_INTERVAL_MS,
    clock: Callable[[], int] = current_time_millis,
) -> RepeatedAlert:
    return RepeatedAlert(inner=alert, repeat_interval_ms=repeat_interval_ms, clock=clock)


def unwrap(alert: AlertLike) -> Alert:
    """Strip every decorator layer and return the base alert."""
    while isinstance(alert, PriorityAlert | RepeatedAlert):
        alert = alert.inner
    if not isinstance(alert, Alert):
        raise TypeError(f"Not an alert: {alert!r}")
    return alert
