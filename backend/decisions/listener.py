"""Listener capturing the evaluation events of a single engine call."""

from __future__ import annotations

from .models import EvaluationEvent


class EventCapture:
    """Buffers every evaluation event the engine reports.

    The buffer is cleared around each evaluation call by the owning
    evaluator, so an instance must not be shared by concurrent callers.
    """

    def __init__(self) -> None:
        self._events: list[EvaluationEvent] = []

    def notify(self, event: EvaluationEvent) -> None:
        self._events.append(event)

    def events(self) -> list[EvaluationEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()
