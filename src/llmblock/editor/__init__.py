"""Editor package containing the buffer and anchor document model."""

from .document_model import Anchor, AnchorGravity, BufferKilledError, DocumentMetadata, TextBuffer

__all__ = ["Anchor", "AnchorGravity", "BufferKilledError", "DocumentMetadata", "TextBuffer"]
