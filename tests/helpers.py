"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import shlex
import sys
from datetime import datetime, timezone

from llmblock.editor.document_model import TextBuffer
from llmblock.llm.filters import FilterResult
from llmblock.llm.options import RequestOptions, is_silent
from llmblock.llm.request_types import LiveRequest
from llmblock.llm.streaming import open_stream_region
from llmblock.llm.transcript import DiagnosticLog


class FakeFilter:
    """Filter stub that records its input and returns a canned result."""

    def __init__(self, transform=None, *, ok: bool = True, message: str = "", name: str = "fake") -> None:
        self.name = name
        self.calls: list[str] = []
        self._transform = transform or (lambda text: text)
        self._ok = ok
        self._message = message

    def __call__(self, text: str) -> FilterResult:
        self.calls.append(text)
        if not self._ok:
            return FilterResult(text=text, ok=False, returncode=1, message=self._message or f"{self.name} failed")
        return FilterResult(text=self._transform(text), ok=True, returncode=0)


class RecordingNotifier:
    """Notifier stub collecting messages and indicator updates."""

    def __init__(self) -> None:
        self.messages: list[str] = []
        self.active: list[int] = []

    def message(self, text: str) -> None:
        self.messages.append(text)

    def set_active(self, count: int) -> None:
        self.active.append(count)


def make_request(
    document: TextBuffer,
    position: int,
    options=None,
    *,
    command: str = "llm 'prompt' ",
    body: str = "prompt",
    result_position: int | None = None,
) -> LiveRequest:
    """Build a request the way the lifecycle manager does, without spawning."""

    request_options = RequestOptions.coerce(options)
    diagnostic = DiagnosticLog(name="*llm-test*")
    diagnostic.write_header(command, datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))
    anchor, result_anchor, stream_start = open_stream_region(
        document, position, result_position=result_position, silent=is_silent(request_options)
    )
    return LiveRequest(
        command=command,
        document=document,
        anchor=anchor,
        diagnostic=diagnostic,
        options=request_options,
        result_anchor=result_anchor,
        stream_start=stream_start,
        body=body,
    )


def python_program(source: str) -> str:
    """Shell command prefix running ``source`` with the current interpreter.

    The lifecycle manager appends the quoted prompt body as the first argument.
    """

    return f"{shlex.quote(sys.executable)} -c {shlex.quote(source)}"
