"""Process-wide collection of in-flight requests."""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import threading
from typing import Iterator

from .errors import ErrorCode, LLMBlockError
from .request_types import LiveRequest

__all__ = ["RequestRegistry", "terminate_request"]

LOGGER = logging.getLogger(__name__)


def terminate_request(request: LiveRequest) -> bool:
    """Send SIGTERM to the request's process group.

    Returns ``True`` when a signal was delivered. A request whose process has
    not been created yet is flagged so the process is terminated on start.
    """

    request.cancel_requested = True
    process = request.process
    if process is None or process.returncode is not None:
        return False
    with contextlib.suppress(ProcessLookupError):
        if hasattr(os, "killpg"):
            # Processes run in their own session; signal the shell and its children.
            os.killpg(process.pid, signal.SIGTERM)
        else:  # pragma: no cover - non-POSIX
            process.terminate()
        return True
    return False


class RequestRegistry:
    """Unordered set of live requests.

    Requests are added on spawn and removed on their terminal event, or all
    at once by :meth:`cancel_all`. Instances are independent; nothing here is
    global.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._requests: dict[str, LiveRequest] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def __iter__(self) -> Iterator[LiveRequest]:
        return iter(self.snapshot())

    def __contains__(self, request: object) -> bool:
        if not isinstance(request, LiveRequest):
            return False
        with self._lock:
            return self._requests.get(request.request_id) is request

    def __bool__(self) -> bool:
        return True

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def add(self, request: LiveRequest) -> None:
        with self._lock:
            if request.request_id in self._requests:
                raise LLMBlockError(
                    error_code=ErrorCode.DUPLICATE_REQUEST,
                    message=f"Request {request.request_id} is already registered",
                )
            self._requests[request.request_id] = request

    def discard(self, request: LiveRequest) -> bool:
        with self._lock:
            current = self._requests.get(request.request_id)
            if current is not request:
                return False
            del self._requests[request.request_id]
            return True

    def get(self, request_id: str) -> LiveRequest | None:
        with self._lock:
            return self._requests.get(request_id)

    def snapshot(self) -> list[LiveRequest]:
        with self._lock:
            return list(self._requests.values())

    def cancel(self, request: LiveRequest) -> bool:
        """Terminate one request; removal happens on its terminal event."""

        if request not in self:
            LOGGER.debug("Cancel ignored for unregistered request %s", request.request_id)
            return False
        LOGGER.info("Cancelling request %s", request.request_id[:8])
        terminate_request(request)
        return True

    def cancel_all(self) -> int:
        """Terminate every request and clear the registry immediately."""

        with self._lock:
            requests = list(self._requests.values())
            for request in requests:
                terminate_request(request)
            self._requests.clear()
        if requests:
            LOGGER.warning("Cancelled %d request(s) and cleared the registry", len(requests))
        return len(requests)
