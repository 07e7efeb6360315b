"""Streaming orchestration of ``llm`` CLI requests launched from a document.

Hosts call :func:`setup_logging` once at startup to send the package log to a
rotating file, then drive requests through :class:`ProcessLifecycleManager`.
"""

from ..utils.logging import setup_logging
from .command import CommandBuilder, build_command, expand_path
from .errors import ConfigurationError, ErrorCode, InvalidTransitionError, LLMBlockError
from .finalizer import FinalizeResult, ResultFinalizer
from .lifecycle import ProcessLifecycleManager
from .notify import CallbackNotifier, LoggingNotifier, Notifier, status_text
from .options import ClassifiedOptions, Option, RequestOptions, classify_options, parse_header_arguments
from .registry import RequestRegistry
from .request_types import LiveRequest, RequestState, TerminalEvent, TerminalKind
from .streaming import StreamRouter
from .transcript import DiagnosticLog

__all__ = [
    "CallbackNotifier",
    "ClassifiedOptions",
    "CommandBuilder",
    "ConfigurationError",
    "DiagnosticLog",
    "ErrorCode",
    "FinalizeResult",
    "InvalidTransitionError",
    "LLMBlockError",
    "LiveRequest",
    "LoggingNotifier",
    "Notifier",
    "Option",
    "ProcessLifecycleManager",
    "RequestOptions",
    "RequestRegistry",
    "RequestState",
    "ResultFinalizer",
    "StreamRouter",
    "TerminalEvent",
    "TerminalKind",
    "build_command",
    "classify_options",
    "expand_path",
    "parse_header_arguments",
    "setup_logging",
    "status_text",
]
