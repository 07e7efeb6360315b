"""Route incremental process output into the transcript and the document."""

from __future__ import annotations

import logging

from ..editor.document_model import Anchor, AnchorGravity, TextBuffer
from .request_types import LiveRequest

__all__ = ["StreamRouter", "normalize_chunk", "open_stream_region"]

LOGGER = logging.getLogger(__name__)


def normalize_chunk(chunk: str) -> str:
    return chunk.replace("\r", "")


def open_stream_region(
    document: TextBuffer,
    position: int,
    *,
    result_position: int | None = None,
    silent: bool = False,
) -> tuple[Anchor, Anchor | None, Anchor | None]:
    """Create ``(anchor, result_anchor, stream_start)`` for a new request.

    The streamed region ``[stream_start, result_anchor)`` only ever grows
    through :meth:`StreamRouter.route`. While it is empty both ends move past
    text inserted at their position, so a region opened where another one ends
    stays behind it. When results stream at the insertion point, the final text
    is written where the streamed text was (``anchor`` is ``stream_start``).
    """

    if silent:
        return document.anchor(position, gravity=AnchorGravity.STAY), None, None
    start = position if result_position is None else result_position
    stream_start = document.anchor(start, gravity=AnchorGravity.AFTER)
    result_anchor = stream_start.copy()
    if start == position:
        anchor = stream_start
    else:
        anchor = document.anchor(position, gravity=AnchorGravity.STAY)
    return anchor, result_anchor, stream_start


class StreamRouter:
    """Appends output chunks to a transcript cursor and a document cursor."""

    def route(
        self,
        chunk: str,
        diagnostic_cursor: Anchor,
        document_cursor: Anchor | None,
        *,
        silent: bool = False,
        region_start: Anchor | None = None,
    ) -> str:
        """Append ``chunk`` at both cursors and advance them.

        The document copy is skipped for silent requests and when the
        document cursor no longer points into a live buffer. With
        ``region_start`` the cursor closes the region ``[region_start,
        cursor)``: text inserted at either end by anyone else stays outside it.
        """

        text = normalize_chunk(chunk)
        if not text:
            return text
        log_buffer = diagnostic_cursor.buffer
        if log_buffer is None:
            raise ValueError("Diagnostic cursor is detached")
        diagnostic_cursor.move_to(log_buffer.insert(diagnostic_cursor.position, text))

        if silent or document_cursor is None or not document_cursor.is_live:
            return text
        document = document_cursor.buffer
        assert document is not None
        position = document_cursor.position
        opening = region_start is not None and region_start.position >= position
        document_cursor.move_to(document.insert(position, text))
        if region_start is not None:
            if opening:
                region_start.move_to(position)
            document_cursor.gravity = AnchorGravity.STAY
        return text

    def route_request(self, request: LiveRequest, chunk: str) -> str:
        text = self.route(
            chunk,
            request.diagnostic.cursor,
            request.result_anchor,
            silent=request.silent,
            region_start=request.stream_start,
        )
        request.output_chars += len(text)
        return text
