"""In-process telemetry events and a ring buffer of finished requests."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Callable, Mapping, Protocol

__all__ = [
    "REQUEST_FINISHED",
    "REQUEST_STARTED",
    "RequestSummary",
    "RequestTelemetrySink",
    "TelemetrySink",
    "clear_event_listeners",
    "emit",
    "register_event_listener",
    "unregister_event_listener",
]

LOGGER = logging.getLogger(__name__)

REQUEST_STARTED = "llm.request_started"
REQUEST_FINISHED = "llm.request_finished"

_EVENT_LISTENERS: dict[str, list[Callable[[dict[str, Any]], None]]] = {}


@dataclass(slots=True)
class RequestSummary:
    """Outcome of a single finished request."""

    request_id: str
    status: str
    kind: str
    elapsed: float
    returncode: int | None
    output_chars: int
    document: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TelemetrySink(Protocol):
    """Sink interface used to collect request summaries."""

    def record(self, summary: RequestSummary) -> None:  # pragma: no cover - protocol stub
        ...


class RequestTelemetrySink:
    """Simple ring-buffer sink for local inspection and tests."""

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = max(10, capacity)
        self._buffer: deque[RequestSummary] = deque(maxlen=self._capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, summary: RequestSummary) -> None:
        with self._lock:
            self._buffer.append(summary)

    def tail(self, limit: int | None = None) -> list[RequestSummary]:
        with self._lock:
            events = list(self._buffer)
        if limit is None or limit >= len(events):
            return events
        return events[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)


def register_event_listener(event_name: str, callback: Callable[[dict[str, Any]], None]) -> None:
    """Subscribe ``callback`` to ``event_name`` broadcasts."""

    if not event_name or callback is None:
        return
    listeners = _EVENT_LISTENERS.setdefault(event_name, [])
    if callback not in listeners:
        listeners.append(callback)


def unregister_event_listener(event_name: str, callback: Callable[[dict[str, Any]], None]) -> None:
    listeners = _EVENT_LISTENERS.get(event_name)
    if not listeners:
        return
    try:
        listeners.remove(callback)
    except ValueError:
        return


def clear_event_listeners() -> None:
    _EVENT_LISTENERS.clear()


def emit(event_name: str, payload: Mapping[str, Any] | None = None) -> None:
    """Broadcast a structured telemetry event to in-process listeners."""

    if not event_name:
        return
    event_payload = {"event": event_name}
    if payload:
        event_payload.update(payload)
    listeners = list(_EVENT_LISTENERS.get(event_name, ()))
    for callback in listeners:
        try:
            callback(dict(event_payload))
        except Exception:  # pragma: no cover - listeners must not break emitters
            LOGGER.debug("Telemetry listener %s failed", callback, exc_info=True)
    LOGGER.debug("Telemetry emit %s: %s", event_name, event_payload)
