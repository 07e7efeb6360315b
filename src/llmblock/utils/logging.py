"""Logging helpers: host-side setup and request-scoped loggers."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from ..services.settings import Settings

__all__ = ["RequestLogAdapter", "get_log_path", "get_request_logger", "setup_logging"]

_DEFAULT_LOG_DIR = Path.home() / ".llmblock" / "logs"
_LOG_FILE_NAME = "llmblock.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOG_PATH: Path | None = None


def setup_logging(
    settings: Settings | None = None,
    *,
    console: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Attach a rotating file handler to the ``llmblock`` logger.

    Meant to be called once by the host editor. Only the package logger is
    touched, so the host keeps its own root configuration. Level and
    directory come from ``settings.log_level`` and ``settings.log_dir``.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    settings = settings or Settings()
    level = logging.getLevelName(str(settings.log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO
    target_dir = Path(settings.log_dir).expanduser() if settings.log_dir else _DEFAULT_LOG_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    package_logger = logging.getLogger("llmblock")
    for handler in list(package_logger.handlers):
        if getattr(handler, "_llmblock_owned", False):
            package_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._llmblock_owned = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
    package_logger.setLevel(level)

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the log file configured by :func:`setup_logging`, if any."""

    return _LOG_PATH


class RequestLogAdapter(logging.LoggerAdapter):
    """Prefix records with the id of the request they belong to."""

    def process(self, msg, kwargs):
        request_id = (self.extra or {}).get("request_id", "-")
        return f"[{request_id}] {msg}", kwargs


def get_request_logger(name: str, request_id: str) -> RequestLogAdapter:
    """Return a logger whose messages carry a short request id."""

    return RequestLogAdapter(logging.getLogger(name), {"request_id": request_id[:8]})
