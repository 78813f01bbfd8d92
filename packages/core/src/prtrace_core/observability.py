"""Review lifecycle events and the observers that receive them.

Events are a side channel: the orchestrator hands each one to an observer
and never lets the observer influence control flow. Observers that fail are
caught at the boundary (see ReviewOrchestrator._emit).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from rich.console import Console

logger = logging.getLogger(__name__)

EVENT_NAMES = (
    "pipeline_started",
    "pipeline_completed",
    "pipeline_failed",
    "step_started",
    "step_succeeded",
    "step_failed",
    "degraded",
    "llm_prompt",
    "llm_response",
    "llm_error",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ReviewEvent:
    name: str
    step: str | None = None
    message: str | None = None
    duration_ms: int | None = None
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return asdict(self)


class BaseObserver(ABC):
    """Receiver of review lifecycle events. Fire-and-forget."""

    @abstractmethod
    def emit(self, event: ReviewEvent) -> None:
        """Handle one event."""


class NoOpObserver(BaseObserver):
    def emit(self, event: ReviewEvent) -> None:
        pass


class InMemoryObserver(BaseObserver):
    """Collects events in order; used by tests and by callers that render a timeline."""

    def __init__(self):
        self._events: list[ReviewEvent] = []

    def emit(self, event: ReviewEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[ReviewEvent]:
        return list(self._events)

    def names(self) -> list[str]:
        return [e.name for e in self._events]


class LoggingObserver(BaseObserver):
    """Forwards events to a standard library logger."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def emit(self, event: ReviewEvent) -> None:
        if event.name in ("step_failed", "pipeline_failed", "llm_error"):
            level = logging.ERROR
        elif event.name == "degraded":
            level = logging.WARNING
        elif event.name in ("llm_prompt", "llm_response"):
            level = logging.DEBUG
        else:
            level = logging.INFO
        self._log.log(
            level,
            "%s step=%s duration_ms=%s %s",
            event.name,
            event.step or "-",
            event.duration_ms if event.duration_ms is not None else "-",
            event.message or "",
        )


class ConsoleObserver(BaseObserver):
    """Prints step progress to the terminal."""

    _STYLE = {
        "step_started": "dim",
        "step_succeeded": "green",
        "step_failed": "red",
        "degraded": "yellow",
        "pipeline_completed": "bold green",
        "pipeline_failed": "bold red",
    }

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True)

    def emit(self, event: ReviewEvent) -> None:
        style = self._STYLE.get(event.name)
        if style is None:
            return
        if event.name == "step_started":
            self.console.print(f"[{style}]→ {event.step}[/{style}]")
            return
        label = event.step or event.name.replace("_", " ")
        timing = f" ({event.duration_ms} ms)" if event.duration_ms is not None else ""
        detail = f": {event.message}" if event.message else ""
        self.console.print(f"[{style}]{label}{timing}{detail}[/{style}]")
