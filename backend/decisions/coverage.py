"""Thread-safe accumulator of coverage events."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .models import CoverageEvent


class CoverageCollector:
    """Append-only store of coverage events for one test session.

    The same rule may be recorded many times; events are collapsed per
    ``(decision_key, rule_id)`` only when a report is generated.
    """

    def __init__(self) -> None:
        self._events: list[CoverageEvent] = []
        self._lock = threading.Lock()

    def record(self, events: Iterable[CoverageEvent]) -> None:
        batch = list(events)
        with self._lock:
            self._events.extend(batch)

    def snapshot(self) -> list[CoverageEvent]:
        with self._lock:
            return list(self._events)

    def events_for(self, decision_key: str) -> list[CoverageEvent]:
        return [event for event in self.snapshot() if event.decision_key == decision_key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
