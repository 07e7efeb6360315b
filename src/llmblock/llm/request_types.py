"""State, terminal events and the live request record."""

from __future__ import annotations

import asyncio
import codecs
import signal
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from ..editor.document_model import Anchor, TextBuffer
from .errors import InvalidTransitionError
from .options import ClassifiedOptions, RequestOptions, classify_options, is_silent
from .transcript import DiagnosticLog

__all__ = [
    "LiveRequest",
    "OutputHandler",
    "RequestState",
    "TerminalEvent",
    "TerminalHandler",
    "TerminalKind",
]


class RequestState(Enum):
    """Lifecycle of a request: spawned, running, then finished or aborted."""

    SPAWNED = "spawned"
    RUNNING = "running"
    FINISHED = "finished"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestState.FINISHED, RequestState.ABORTED)


_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.SPAWNED: frozenset({RequestState.RUNNING, RequestState.ABORTED}),
    RequestState.RUNNING: frozenset({RequestState.FINISHED, RequestState.ABORTED}),
    RequestState.FINISHED: frozenset(),
    RequestState.ABORTED: frozenset(),
}


class TerminalKind(Enum):
    FINISHED = "finished"
    ABORTED = "aborted"


@dataclass(slots=True, frozen=True)
class TerminalEvent:
    """The single notification marking the end of a process."""

    kind: TerminalKind
    description: str
    returncode: int | None = None
    occurred_at: float = field(default_factory=time.monotonic)

    @property
    def finished(self) -> bool:
        return self.kind is TerminalKind.FINISHED

    @classmethod
    def from_returncode(cls, returncode: int | None) -> TerminalEvent:
        if returncode == 0:
            return cls(TerminalKind.FINISHED, "finished", 0)
        if returncode is None:
            return cls(TerminalKind.ABORTED, "ended without exit status", None)
        if returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = f"signal {-returncode}"
            return cls(TerminalKind.ABORTED, f"killed by {name}", returncode)
        return cls(TerminalKind.ABORTED, f"exited abnormally with code {returncode}", returncode)

    @classmethod
    def spawn_failure(cls, exc: BaseException) -> TerminalEvent:
        return cls(TerminalKind.ABORTED, f"failed to start ({exc})", None)


OutputHandler = Callable[["LiveRequest", str], Any]
TerminalHandler = Callable[["LiveRequest", TerminalEvent], Any]


@dataclass(eq=False)
class LiveRequest:
    """One external process plus everything needed to finalize its output."""

    command: str
    document: TextBuffer
    anchor: Anchor
    diagnostic: DiagnosticLog
    options: RequestOptions = field(default_factory=RequestOptions)
    classified: ClassifiedOptions | None = None
    result_anchor: Anchor | None = None
    stream_start: Anchor | None = None
    body: str = ""
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_monotonic: float = field(default_factory=time.monotonic)
    state: RequestState = RequestState.SPAWNED
    process: asyncio.subprocess.Process | None = None
    task: asyncio.Task | None = None
    completion: asyncio.Future | None = None
    terminal_event: TerminalEvent | None = None
    cancel_requested: bool = False
    output_chars: int = 0
    on_output: OutputHandler | None = None
    on_terminal: TerminalHandler | None = None
    event_log: Any = None
    _decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="replace"),
        repr=False,
    )

    def __post_init__(self) -> None:
        if self.classified is None:
            self.classified = classify_options(self.options)

    @property
    def silent(self) -> bool:
        return is_silent(self.options)

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def transition(self, new_state: RequestState) -> None:
        if new_state is self.state:
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                message=f"Cannot move request from {self.state.value} to {new_state.value}",
                details={"request_id": self.request_id},
            )
        self.state = new_state

    def elapsed(self, now: float | None = None) -> float:
        return max(0.0, (now if now is not None else time.monotonic()) - self.started_monotonic)

    def decode(self, data: bytes, *, final: bool = False) -> str:
        return self._decoder.decode(data, final)

    def describe(self) -> str:
        prompt = " ".join(self.body.split())
        if len(prompt) > 40:
            prompt = prompt[:37] + "..."
        pid = self.pid if self.pid is not None else "-"
        return f"{self.request_id[:8]} pid={pid} {self.state.value} {self.elapsed():.1f}s {prompt!r}"
