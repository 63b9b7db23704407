"""Pipeline stage events.

Stages report progress ("[load] reading checkout.json") to an event sink that
is passed in explicitly, so each stage can run and be tested on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console


class EventSink:
    """Receives stage events. The base sink discards them."""

    def emit(self, stage: str, message: str) -> None:
        pass


class NullEventSink(EventSink):
    pass


class ConsoleEventSink(EventSink):
    """Writes ``[stage] message`` lines to stderr (``--verbose``)."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True)

    def emit(self, stage: str, message: str) -> None:
        self.console.print(f"[{stage}] {message}", markup=False, highlight=False, soft_wrap=True)


@dataclass
class RecordingEventSink(EventSink):
    """Keeps events in memory."""

    events: list[tuple[str, str]] = field(default_factory=list)

    def emit(self, stage: str, message: str) -> None:
        self.events.append((stage, message))

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.events]

    def messages(self, stage: str) -> list[str]:
        return [message for s, message in self.events if s == stage]
