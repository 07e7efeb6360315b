"""User-facing notification hooks for request progress."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

__all__ = ["CallbackNotifier", "LoggingNotifier", "Notifier", "status_text"]

LOGGER = logging.getLogger(__name__)


class Notifier(Protocol):
    """Receives messages and active-request counts for display."""

    def message(self, text: str) -> None:
        """Show a short status message to the user."""
        ...

    def set_active(self, count: int) -> None:
        """Update the active indicator; ``0`` clears it."""
        ...


def status_text(count: int) -> str:
    """Indicator text for ``count`` running requests (empty when idle)."""

    return f"LLM[{count}]" if count > 0 else ""


class LoggingNotifier:
    """Default notifier that writes to the module logger."""

    def __init__(self) -> None:
        self.active = 0

    def message(self, text: str) -> None:
        LOGGER.info("%s", text)

    def set_active(self, count: int) -> None:
        self.active = count
        LOGGER.debug("Active indicator: %s", status_text(count) or "cleared")


class CallbackNotifier:
    """Adapts plain callables (status bar setters and the like) to :class:`Notifier`."""

    def __init__(
        self,
        *,
        on_message: Callable[[str], None] | None = None,
        on_active: Callable[[int], None] | None = None,
    ) -> None:
        self._on_message = on_message
        self._on_active = on_active

    def message(self, text: str) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(text)
        except Exception:
            LOGGER.debug("Message callback failed", exc_info=True)

    def set_active(self, count: int) -> None:
        if self._on_active is None:
            return
        try:
            self._on_active(count)
        except Exception:
            LOGGER.debug("Indicator callback failed", exc_info=True)
