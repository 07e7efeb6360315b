"""Build the shell command line that runs the external ``llm`` tool."""

from __future__ import annotations

import logging
import os
import shlex
from typing import Iterable, Mapping

from .errors import ConfigurationError, ErrorCode
from .options import (
    ATTACHMENT_TYPE_KEYS,
    DATABASE_KEYS,
    USER_PATH_KEY,
    ClassifiedOptions,
    Option,
    RequestOptions,
    classify_options,
)

__all__ = ["CommandBuilder", "USER_PATH_ENV", "build_command", "expand_path", "flag_token"]

LOGGER = logging.getLogger(__name__)

USER_PATH_ENV = "LLM_USER_PATH"
DEFAULT_PROGRAM = "llm"


def expand_path(value: str | None, *, option: str) -> str:
    """Expand ``value`` to an absolute filesystem path.

    Raises:
        ConfigurationError: if the value is missing, empty, contains a NUL
            byte or names a home directory that cannot be resolved.
    """

    if value is None or not str(value).strip():
        raise ConfigurationError(
            error_code=ErrorCode.PATH_EXPANSION_FAILED,
            message=f"Option '{option}' requires a path value",
            option=option,
        )
    raw = str(value).strip()
    if "\x00" in raw:
        raise ConfigurationError(
            error_code=ErrorCode.PATH_EXPANSION_FAILED,
            message=f"Option '{option}' contains a NUL byte",
            option=option,
        )
    expanded = os.path.expanduser(raw)
    if expanded.startswith("~"):
        raise ConfigurationError(
            error_code=ErrorCode.PATH_EXPANSION_FAILED,
            message=f"Unable to expand home directory in '{raw}'",
            details={"value": raw},
            option=option,
        )
    return os.path.abspath(expanded)


def flag_prefix(key: str) -> str:
    return f"-{key}" if len(key) == 1 else f"--{key}"


def flag_token(option: Option) -> str:
    """Render one tool option as a flag token ending in a separating space."""

    prefix = flag_prefix(option.key)
    if option.key in DATABASE_KEYS:
        return f"{prefix} {shlex.quote(expand_path(option.value, option=option.key))} "
    if option.value is None:
        return f"{prefix} "
    if option.key in ATTACHMENT_TYPE_KEYS:
        filename, sep, content_type = option.value.partition(" ")
        if not sep:
            LOGGER.warning(
                "Option '%s' expects '<file> <content-type>', got %r", option.key, option.value
            )
            return f"{prefix} {shlex.quote(option.value)} "
        return f"{prefix} {shlex.quote(filename)} {shlex.quote(content_type)} "
    return f"{prefix} {shlex.quote(option.value)} "


def build_command(
    body: str,
    options: RequestOptions | Mapping[str, object] | Iterable | None = None,
    *,
    program: str = DEFAULT_PROGRAM,
    user_path: str | None = None,
    classified: ClassifiedOptions | None = None,
) -> str:
    """Return the full shell command for ``body`` and ``options``.

    Only tool options become flags. A ``user-path`` option (or the
    ``user_path`` fallback) is exported as ``LLM_USER_PATH`` in front of the
    program. Nothing is executed here.
    """

    buckets = classified or classify_options(options)
    tokens = "".join(flag_token(option) for option in buckets.tool)
    command = f"{program} {shlex.quote(body or '')} {tokens}"

    override = buckets.system_value(USER_PATH_KEY) if buckets.has_system(USER_PATH_KEY) else None
    if buckets.has_system(USER_PATH_KEY) and override is None:
        raise ConfigurationError(
            error_code=ErrorCode.PATH_EXPANSION_FAILED,
            message=f"Option '{USER_PATH_KEY}' requires a path value",
            option=USER_PATH_KEY,
        )
    storage = override if override is not None else user_path
    if storage:
        resolved = expand_path(storage, option=USER_PATH_KEY)
        command = f"{USER_PATH_ENV}={shlex.quote(resolved)} {command}"
    return command


class CommandBuilder:
    """Settings-aware wrapper around :func:`build_command`."""

    def __init__(self, *, program: str = DEFAULT_PROGRAM, user_path: str | None = None) -> None:
        self.program = program
        self.user_path = user_path

    @classmethod
    def from_settings(cls, settings) -> CommandBuilder:
        return cls(program=settings.program, user_path=settings.user_path)

    def build(
        self,
        body: str,
        options: RequestOptions | Mapping[str, object] | Iterable | None = None,
        *,
        classified: ClassifiedOptions | None = None,
    ) -> str:
        command = build_command(
            body,
            options,
            program=self.program,
            user_path=self.user_path,
            classified=classified,
        )
        LOGGER.debug("Built llm command: %s", command)
        return command
