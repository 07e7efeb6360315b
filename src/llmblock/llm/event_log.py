"""Debug event logging for individual requests."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping

from ..utils import logging as logging_utils

LOGGER = logging.getLogger(__name__)


def _default_event_dir() -> Path:
    log_path = logging_utils.get_log_path()
    if log_path is not None:
        return log_path.parent / "events"
    return Path.home() / ".llmblock" / "logs" / "events"


@dataclass(slots=True)
class _NullRequestEventLogRun:
    """No-op implementation used when event logging is disabled."""

    path: Path | None = None

    def log_output(self, *_: Any, **__: Any) -> None:
        return

    def log_completion(self, *_: Any, **__: Any) -> None:
        return

    def log_failure(self, *_: Any, **__: Any) -> None:
        return


class RequestEventLogRun:
    """Writes structured JSONL entries for one request."""

    def __init__(self, path: Path, *, context: Mapping[str, Any]) -> None:
        self.path = path
        self._file = path.open("w", encoding="utf-8")
        self._finalized = False
        self._write_entry("start", context)

    def close(self) -> None:
        try:
            self._file.close()
        except OSError:  # pragma: no cover
            LOGGER.debug("Failed to close event log %s", self.path, exc_info=True)

    def log_output(self, *, chars: int, total_chars: int) -> None:
        if self._finalized:
            return
        self._write_entry("output", {"chars": chars, "total_chars": total_chars})

    def log_completion(self, *, status: str, elapsed: float, returncode: int | None, output_chars: int) -> None:
        if self._finalized:
            return
        payload = {
            "status": status,
            "elapsed": round(elapsed, 3),
            "returncode": returncode,
            "output_chars": output_chars,
        }
        self._write_entry("completion", payload)
        self._finalized = True
        self.close()

    def log_failure(self, *, message: str, details: Mapping[str, Any] | None = None) -> None:
        if self._finalized:
            return
        payload: dict[str, Any] = {"status": "failure", "message": message}
        if details:
            payload["details"] = self._safe_json(dict(details))
        self._write_entry("failure", payload)
        self._finalized = True
        self.close()

    def _write_entry(self, event: str, payload: Mapping[str, Any] | None = None) -> None:
        entry: dict[str, Any] = {
            "event": event,
            "timestamp": time.time(),
        }
        if payload:
            for key, value in payload.items():
                entry[key] = self._safe_json(value)
        json.dump(entry, self._file, ensure_ascii=False)
        self._file.write("\n")
        self._file.flush()

    def _safe_json(self, value: Any, *, depth: int = 0) -> Any:
        if depth > 6:
            return repr(value)
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, Mapping):
            return {str(key): self._safe_json(val, depth=depth + 1) for key, val in value.items()}
        if isinstance(value, (list, tuple, set)):
            return [self._safe_json(item, depth=depth + 1) for item in value]
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return repr(value)


class RequestEventLogger:
    """Factory for per-request event logs when debug logging is enabled."""

    def __init__(self, *, enabled: bool, base_dir: Path | str | None = None) -> None:
        self.enabled = bool(enabled)
        self._base_dir = Path(base_dir).expanduser() if base_dir else _default_event_dir()

    def start_run(
        self,
        *,
        request_id: str,
        command: str,
        document: str | None,
        options: list[tuple[str, str | None]] | None,
    ) -> RequestEventLogRun | _NullRequestEventLogRun:
        if not self.enabled:
            return _NullRequestEventLogRun()
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            path = self._allocate_path(request_id)
            context = {
                "request_id": request_id,
                "command": command,
                "document": document,
                "options": [list(pair) for pair in options or ()],
            }
            run = RequestEventLogRun(path, context=context)
            LOGGER.debug("Request event log started: %s", path)
            return run
        except OSError:  # pragma: no cover - best effort logging
            LOGGER.debug("Failed to start request event log", exc_info=True)
            return _NullRequestEventLogRun()

    def _allocate_path(self, request_id: str) -> Path:
        timestamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        safe_id = "".join(ch for ch in request_id if ch.isalnum())[:12] or "request"
        return self._base_dir / f"llm-{timestamp}-{safe_id}.jsonl"


__all__ = [
    "RequestEventLogger",
    "RequestEventLogRun",
]
