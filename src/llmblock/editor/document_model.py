"""Text buffers with self-adjusting anchors used as the document capability."""

from __future__ import annotations

import hashlib
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "Anchor",
    "AnchorGravity",
    "BufferKilledError",
    "DocumentMetadata",
    "TextBuffer",
]


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class BufferKilledError(RuntimeError):
    """Raised when a killed buffer is edited or anchored into."""

    def __init__(self, buffer_name: str) -> None:
        super().__init__(f"Buffer '{buffer_name}' has been killed")
        self.buffer_name = buffer_name


class AnchorGravity(Enum):
    """How an anchor reacts to text inserted exactly at its position."""

    STAY = "stay"
    AFTER = "after"


@dataclass(slots=True)
class DocumentMetadata:
    """Metadata describing a loaded buffer."""

    path: Optional[Path] = None
    language: str = "org"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


class Anchor:
    """Stable reference to a logical position inside a :class:`TextBuffer`.

    Edits made through the owning buffer shift the anchor so it keeps denoting
    the same point. Copies are independent: moving one never moves the other.
    """

    def __init__(self, buffer: TextBuffer, position: int, gravity: AnchorGravity) -> None:
        self._buffer: TextBuffer | None = buffer
        self._position = position
        self.gravity = gravity

    def __repr__(self) -> str:
        owner = self._buffer.name if self._buffer is not None else None
        return f"Anchor(buffer={owner!r}, position={self._position}, gravity={self.gravity.value})"

    @property
    def buffer(self) -> TextBuffer | None:
        return self._buffer

    @property
    def position(self) -> int:
        return self._position

    @property
    def is_live(self) -> bool:
        """Return ``True`` while attached to a buffer that has not been killed."""

        return self._buffer is not None and self._buffer.is_alive

    def move_to(self, position: int) -> None:
        if self._buffer is None:
            raise ValueError("Cannot move a detached anchor")
        self._position = self._buffer._clamp(position)

    def copy(self, *, gravity: AnchorGravity | None = None) -> Anchor:
        """Return an independent anchor at the same position."""

        if self._buffer is None:
            raise ValueError("Cannot copy a detached anchor")
        return self._buffer.anchor(self._position, gravity=gravity or self.gravity)

    def detach(self) -> None:
        if self._buffer is not None:
            self._buffer._forget(self)
        self._buffer = None

    def _shift_for_insert(self, position: int, length: int) -> None:
        if self._position > position or (
            self._position == position and self.gravity is AnchorGravity.AFTER
        ):
            self._position += length

    def _shift_for_delete(self, start: int, end: int) -> None:
        if self._position >= end:
            self._position -= end - start
        elif self._position > start:
            self._position = start


class TextBuffer:
    """Mutable text buffer supporting positioned edits and live anchors."""

    def __init__(
        self,
        text: str = "",
        *,
        name: str | None = None,
        metadata: DocumentMetadata | None = None,
    ) -> None:
        self.buffer_id = uuid.uuid4().hex
        self.name = name or f"buffer-{self.buffer_id[:8]}"
        self.metadata = metadata or DocumentMetadata()
        self.version_id = 1
        self._text = text
        self._alive = True
        self._anchors: weakref.WeakSet[Anchor] = weakref.WeakSet()

    def __len__(self) -> int:
        return len(self._text)

    def __repr__(self) -> str:
        return f"TextBuffer(name={self.name!r}, length={len(self._text)}, alive={self._alive})"

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_alive(self) -> bool:
        return self._alive

    @property
    def content_hash(self) -> str:
        return _hash_text(self._text)

    def slice(self, start: int, end: int) -> str:
        start, end = self._normalize_span(start, end)
        return self._text[start:end]

    def anchor(self, position: int, *, gravity: AnchorGravity = AnchorGravity.STAY) -> Anchor:
        """Create an anchor at ``position`` (clamped to the buffer bounds)."""

        self._ensure_alive()
        marker = Anchor(self, self._clamp(position), gravity)
        self._anchors.add(marker)
        return marker

    def end_anchor(self, *, gravity: AnchorGravity = AnchorGravity.AFTER) -> Anchor:
        return self.anchor(len(self._text), gravity=gravity)

    def insert(self, position: int, text: str) -> int:
        """Insert ``text`` at ``position`` and return the offset just after it."""

        self._ensure_alive()
        position = self._clamp(position)
        if not text:
            return position
        self._text = self._text[:position] + text + self._text[position:]
        for marker in list(self._anchors):
            marker._shift_for_insert(position, len(text))
        self._touch()
        return position + len(text)

    def insert_at(self, anchor: Anchor, text: str) -> int:
        """Insert ``text`` at an anchor owned by this buffer."""

        if anchor.buffer is not self:
            raise ValueError("Anchor does not belong to this buffer")
        return self.insert(anchor.position, text)

    def delete(self, start: int, end: int) -> str:
        """Remove ``[start, end)`` and return the deleted text."""

        self._ensure_alive()
        start, end = self._normalize_span(start, end)
        if start == end:
            return ""
        removed = self._text[start:end]
        self._text = self._text[:start] + self._text[end:]
        for marker in list(self._anchors):
            marker._shift_for_delete(start, end)
        self._touch()
        return removed

    def delete_between(self, first: Anchor, second: Anchor) -> str:
        if first.buffer is not self or second.buffer is not self:
            raise ValueError("Anchors do not belong to this buffer")
        return self.delete(first.position, second.position)

    def kill(self) -> None:
        """Mark the buffer dead; later edits raise :class:`BufferKilledError`."""

        self._alive = False

    def snapshot(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "buffer_id": self.buffer_id,
            "name": self.name,
            "text": self._text,
            "language": self.metadata.language,
            "version_id": self.version_id,
            "content_hash": self.content_hash,
            "alive": self._alive,
        }
        if self.metadata.path:
            payload["path"] = str(self.metadata.path)
        return payload

    def _ensure_alive(self) -> None:
        if not self._alive:
            raise BufferKilledError(self.name)

    def _touch(self) -> None:
        self.version_id += 1
        self.metadata.updated_at = _utcnow()

    def _clamp(self, position: int) -> int:
        return max(0, min(int(position), len(self._text)))

    def _normalize_span(self, start: int, end: int) -> tuple[int, int]:
        start = self._clamp(start)
        end = self._clamp(end)
        if end < start:
            start, end = end, start
        return start, end

    def _forget(self, anchor: Anchor) -> None:
        self._anchors.discard(anchor)
