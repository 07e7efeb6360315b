"""Spawn ``llm`` processes, stream their output and finalize them once."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Mapping

from ..editor.document_model import TextBuffer
from ..services import telemetry
from ..services.settings import Settings
from ..utils.logging import get_request_logger
from .command import CommandBuilder
from .event_log import RequestEventLogger
from .finalizer import FinalizeResult, ResultFinalizer
from .notify import LoggingNotifier, Notifier, status_text
from .options import RequestOptions, classify_options, is_silent
from .registry import RequestRegistry, terminate_request
from .request_types import (
    LiveRequest,
    OutputHandler,
    RequestState,
    TerminalEvent,
    TerminalHandler,
    TerminalKind,
)
from .streaming import StreamRouter, open_stream_region
from .transcript import DiagnosticLog

__all__ = ["ProcessLifecycleManager"]

LOGGER = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class ProcessLifecycleManager:
    """Owns the asynchronous side of every request.

    Output chunks and the terminal event are delivered on the event loop that
    spawned the process, in arrival order. Each request receives exactly one
    terminal event; late or repeated deliveries are ignored.
    """

    def __init__(
        self,
        registry: RequestRegistry | None = None,
        *,
        settings: Settings | None = None,
        command_builder: CommandBuilder | None = None,
        router: StreamRouter | None = None,
        finalizer: ResultFinalizer | None = None,
        notifier: Notifier | None = None,
        event_logger: RequestEventLogger | None = None,
        telemetry_sink: telemetry.TelemetrySink | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        read_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self._settings = settings or Settings()
        self._registry = registry if registry is not None else RequestRegistry()
        self._builder = command_builder or CommandBuilder.from_settings(self._settings)
        self._router = router or StreamRouter()
        self._notifier = notifier or LoggingNotifier()
        self._finalizer = finalizer or ResultFinalizer(self._settings, notifier=self._notifier)
        self._event_logger = event_logger or RequestEventLogger(
            enabled=self._settings.debug_event_logging,
            base_dir=self._settings.event_log_dir,
        )
        self._telemetry_sink = telemetry_sink or telemetry.RequestTelemetrySink(self._settings.telemetry_capacity)
        self._loop = loop
        self._read_size = max(1, int(read_size))
        self._tasks: set[asyncio.Task] = set()
        self._last_response: str | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def registry(self) -> RequestRegistry:
        return self._registry

    @property
    def telemetry_sink(self) -> telemetry.TelemetrySink:
        return self._telemetry_sink

    @property
    def last_response(self) -> str | None:
        """Text inserted by the most recent successfully finished request."""

        return self._last_response

    def active_requests(self) -> list[LiveRequest]:
        return self._registry.snapshot()

    def status_text(self) -> str:
        return status_text(len(self._registry))

    def submit(
        self,
        document: TextBuffer,
        position: int,
        body: str,
        options: RequestOptions | Mapping[str, object] | Iterable | None = None,
        *,
        result_position: int | None = None,
    ) -> LiveRequest:
        """Build the command for ``body`` and start it.

        ``position`` is where the final result is written; streamed text
        starts at ``result_position`` (defaults to ``position``). Command
        construction errors are raised before any process is started.
        """

        request_options = RequestOptions.coerce(options)
        classified = classify_options(request_options)
        command = self._builder.build(body, classified=classified)

        request_id = uuid.uuid4().hex
        started_at = datetime.now(timezone.utc)
        diagnostic = DiagnosticLog(name=f"*llm-{request_id[:8]}*")
        diagnostic.write_header(command, started_at)

        anchor, result_anchor, stream_start = open_stream_region(
            document, position, result_position=result_position, silent=is_silent(classified)
        )

        request = LiveRequest(
            command=command,
            document=document,
            anchor=anchor,
            diagnostic=diagnostic,
            options=request_options,
            classified=classified,
            result_anchor=result_anchor,
            stream_start=stream_start,
            body=body,
            request_id=request_id,
            started_at=started_at,
        )
        return self.spawn(command, request)

    def spawn(
        self,
        command: str,
        request: LiveRequest,
        *,
        on_output: OutputHandler | None = None,
        on_terminal: TerminalHandler | None = None,
    ) -> LiveRequest:
        """Start ``command`` for ``request`` and register it.

        ``on_output`` defaults to the stream router and ``on_terminal`` to the
        result finalizer. Registry bookkeeping, the indicator and telemetry
        run regardless of which handlers are supplied. Must be called with a
        running event loop unless one was given to the constructor.
        """

        loop = self._loop or asyncio.get_running_loop()
        log = get_request_logger(__name__, request.request_id)

        request.command = command
        request.on_output = on_output or self._router.route_request
        request.on_terminal = on_terminal or self._finalizer.finalize
        request.completion = loop.create_future()
        self._registry.add(request)
        request.transition(RequestState.RUNNING)
        request.event_log = self._event_logger.start_run(
            request_id=request.request_id,
            command=command,
            document=request.document.name,
            options=request.options.to_pairs(),
        )
        self._notifier.set_active(len(self._registry))
        telemetry.emit(
            telemetry.REQUEST_STARTED,
            {
                "request_id": request.request_id,
                "command": command,
                "document": request.document.name,
                "silent": request.silent,
            },
        )
        log.info("Starting: %s", command)

        task = loop.create_task(self._run(request))
        request.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return request

    def cancel(self, request: LiveRequest) -> bool:
        """Terminate ``request``; it is finalized when its process exits."""

        if request.is_terminal:
            return False
        if request in self._registry:
            return self._registry.cancel(request)
        LOGGER.debug("Terminating request %s outside the registry", request.request_id[:8])
        terminate_request(request)
        return True

    def cancel_all(self) -> int:
        """Terminate every live request and clear the registry immediately."""

        count = self._registry.cancel_all()
        self._notifier.set_active(0)
        if count:
            self._notifier.message(f"Cancelled {count} LLM request(s)")
        return count

    async def wait_all(self) -> None:
        """Wait until every spawned process has been finalized."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Process events
    # ------------------------------------------------------------------
    def on_output(self, request: LiveRequest, chunk: str) -> None:
        if request.is_terminal or not chunk:
            return
        handler = request.on_output or self._router.route_request
        try:
            handler(request, chunk)
        except Exception:
            get_request_logger(__name__, request.request_id).warning(
                "Dropping %d characters of output", len(chunk), exc_info=True
            )
            return
        if request.event_log is not None:
            request.event_log.log_output(chars=len(chunk), total_chars=request.output_chars)

    def on_terminal(self, request: LiveRequest, event: TerminalEvent) -> FinalizeResult | None:
        log = get_request_logger(__name__, request.request_id)
        if request.is_terminal:
            log.debug("Ignoring repeated terminal event: %s", event.description)
            return None

        request.terminal_event = event
        request.transition(RequestState.FINISHED if event.finished else RequestState.ABORTED)

        handler = request.on_terminal or self._finalizer.finalize
        result = None
        try:
            result = handler(request, event)
        except Exception as exc:
            log.warning("Finalizing failed: %s", exc, exc_info=True)
            if request.event_log is not None:
                request.event_log.log_failure(message=str(exc), details={"status": event.description})

        self._registry.discard(request)
        if self._registry.is_empty:
            self._notifier.set_active(0)
        else:
            self._notifier.set_active(len(self._registry))

        elapsed = request.elapsed(event.occurred_at)
        self._notifier.message(f"LLM {event.description} after {elapsed:.2f} seconds")
        log.info("Process %s after %.2f seconds", event.description, elapsed)

        if event.finished and isinstance(result, FinalizeResult) and result.inserted:
            self._last_response = result.text

        summary = telemetry.RequestSummary(
            request_id=request.request_id,
            status=event.description,
            kind=event.kind.value,
            elapsed=elapsed,
            returncode=event.returncode,
            output_chars=request.output_chars,
            document=request.document.name,
        )
        self._telemetry_sink.record(summary)
        telemetry.emit(telemetry.REQUEST_FINISHED, summary.to_dict())

        if request.event_log is not None:
            request.event_log.log_completion(
                status=event.description,
                elapsed=elapsed,
                returncode=event.returncode,
                output_chars=request.output_chars,
            )
        if request.completion is not None and not request.completion.done():
            request.completion.set_result(event)
        return result if isinstance(result, FinalizeResult) else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _run(self, request: LiveRequest) -> None:
        log = get_request_logger(__name__, request.request_id)
        try:
            process = await asyncio.create_subprocess_shell(
                request.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            log.error("Failed to start process: %s", exc)
            self.on_terminal(request, TerminalEvent.spawn_failure(exc))
            return

        request.process = process
        log.debug("Process started with pid %s", process.pid)
        if request.cancel_requested:
            terminate_request(request)

        try:
            assert process.stdout is not None
            while True:
                data = await process.stdout.read(self._read_size)
                if not data:
                    break
                self.on_output(request, request.decode(data))
            self.on_output(request, request.decode(b"", final=True))
            returncode = await process.wait()
        except asyncio.CancelledError:
            if process.returncode is None:
                terminate_request(request)
            self.on_terminal(request, TerminalEvent(TerminalKind.ABORTED, "cancelled", process.returncode))
            raise
        self.on_terminal(request, TerminalEvent.from_returncode(returncode))
