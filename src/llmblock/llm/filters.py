"""Synchronous text-to-text filters run over finished responses."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

from ..services.settings import Settings

__all__ = [
    "CommandFilter",
    "FilterResult",
    "TextFilter",
    "json_pretty_printer",
    "markdown_converter",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FilterResult:
    """Filter output; on failure ``text`` is the unchanged input."""

    text: str
    ok: bool
    returncode: int | None = None
    message: str = ""


class TextFilter(Protocol):
    name: str

    def __call__(self, text: str) -> FilterResult:  # pragma: no cover - protocol stub
        ...


class CommandFilter:
    """Pipes text through an external command and returns its stdout.

    Missing executables, timeouts and non-zero exits never raise; they yield
    a failed :class:`FilterResult` carrying the original text.
    """

    def __init__(self, argv: Sequence[str], *, name: str | None = None, timeout: float | None = 30.0) -> None:
        if not argv:
            raise ValueError("CommandFilter requires a command")
        self.argv = list(argv)
        self.name = name or self.argv[0]
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"CommandFilter(name={self.name!r}, argv={self.argv!r})"

    def __call__(self, text: str) -> FilterResult:
        try:
            completed = subprocess.run(
                self.argv,
                input=text,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError:
            message = f"{self.name} is not installed"
            LOGGER.warning("Filter unavailable: %s", message)
            return FilterResult(text=text, ok=False, message=message)
        except subprocess.TimeoutExpired:
            message = f"{self.name} timed out after {self.timeout}s"
            LOGGER.warning("Filter failed: %s", message)
            return FilterResult(text=text, ok=False, message=message)
        except OSError as exc:
            message = f"{self.name} could not run: {exc}"
            LOGGER.warning("Filter failed: %s", message)
            return FilterResult(text=text, ok=False, message=message)

        if completed.returncode != 0:
            detail = (completed.stderr or "").strip().splitlines()
            message = f"{self.name} exited with code {completed.returncode}"
            if detail:
                message = f"{message}: {detail[-1]}"
            LOGGER.warning("Filter failed: %s", message)
            return FilterResult(text=text, ok=False, returncode=completed.returncode, message=message)
        return FilterResult(text=completed.stdout, ok=True, returncode=0)


def markdown_converter(settings: Settings) -> CommandFilter:
    """Filter converting markdown responses into the document markup."""

    return CommandFilter(
        settings.resolved_converter_command(),
        name="markdown converter",
        timeout=settings.filter_timeout,
    )


def json_pretty_printer(settings: Settings) -> CommandFilter:
    return CommandFilter(
        settings.json_printer_command,
        name="JSON pretty-printer",
        timeout=settings.filter_timeout,
    )
