"""Per-request diagnostic transcript and response extraction."""

from __future__ import annotations

import re
from datetime import datetime

from ..editor.document_model import Anchor, AnchorGravity, TextBuffer

__all__ = [
    "OUTPUT_MARKER",
    "DiagnosticLog",
    "extract_response",
    "format_completion_banner",
    "format_start_banner",
]

OUTPUT_MARKER = "Output:\n\n"
_BANNER_PATTERN = re.compile(r"\n?--- Process .* after [0-9.]+ seconds ---\n?\Z")


def format_start_banner(started_at: datetime) -> str:
    return f"--- LLM request started at {started_at.strftime('%Y-%m-%d %H:%M:%S')} ---\n"


def format_completion_banner(status: str, elapsed: float) -> str:
    return f"--- Process {status} after {elapsed:.2f} seconds ---\n"


def extract_response(text: str, *, output_start: int | None = None, banner_start: int | None = None) -> str:
    """Return the process output recorded in a transcript.

    The response is the text between the ``Output:`` marker and the completion
    banner. Without a marker the whole transcript is returned.
    """

    if output_start is None:
        index = text.find(OUTPUT_MARKER)
        if index < 0:
            return text
        output_start = index + len(OUTPUT_MARKER)
    if banner_start is None:
        match = _BANNER_PATTERN.search(text, output_start)
        banner_start = match.start() if match else len(text)
    return text[output_start:max(output_start, banner_start)]


class DiagnosticLog:
    """Scratch buffer holding the full transcript of one request."""

    def __init__(self, buffer: TextBuffer | None = None, *, name: str | None = None) -> None:
        self.buffer = buffer or TextBuffer(name=name or "*llm-log*")
        self.cursor: Anchor = self.buffer.end_anchor(gravity=AnchorGravity.AFTER)
        self._output_start: Anchor | None = None
        self._banner_start: Anchor | None = None

    @property
    def text(self) -> str:
        return self.buffer.text

    @property
    def has_output_marker(self) -> bool:
        return self._output_start is not None

    def write_header(self, command: str, started_at: datetime) -> None:
        """Write the start banner, the command line and the output marker."""

        self.append(format_start_banner(started_at))
        self.append(f"{command}\n\n")
        self.append(OUTPUT_MARKER)
        self._output_start = self.buffer.anchor(self.cursor.position, gravity=AnchorGravity.STAY)

    def append(self, text: str) -> None:
        if not text:
            return
        end = self.buffer.insert(self.cursor.position, text)
        self.cursor.move_to(end)

    def append_banner(self, status: str, elapsed: float) -> None:
        """Append the completion banner on its own line."""

        self._banner_start = self.buffer.anchor(self.cursor.position, gravity=AnchorGravity.STAY)
        if self.buffer.text and not self.buffer.text.endswith("\n"):
            self.append("\n")
        self.append(format_completion_banner(status, elapsed))

    def response_text(self) -> str:
        return extract_response(
            self.buffer.text,
            output_start=self._output_start.position if self._output_start else None,
            banner_start=self._banner_start.position if self._banner_start else None,
        )
