"""Request option model and the three-way option classifier."""

from __future__ import annotations

import shlex
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Sequence

__all__ = [
    "ATTACHMENT_TYPE_KEYS",
    "ClassifiedOptions",
    "DATABASE_KEYS",
    "FRAMEWORK_KEYS",
    "Option",
    "OptionBucket",
    "RequestOptions",
    "SCHEMA_KEYS",
    "SYSTEM_KEYS",
    "classify_options",
    "is_schema_request",
    "is_silent",
    "parse_flag_value",
    "parse_header_arguments",
    "preserves_stream",
    "suppresses_conversion",
]

# Keys the host's block execution machinery consumes itself.
FRAMEWORK_KEYS: frozenset[str] = frozenset(
    {
        "results",
        "exports",
        "cache",
        "session",
        "dir",
        "file",
        "file-desc",
        "file-ext",
        "output-dir",
        "wrap",
        "post",
        "prologue",
        "epilogue",
        "eval",
        "noweb",
        "noweb-ref",
        "noweb-sep",
        "tangle",
        "tangle-mode",
        "comments",
        "padline",
        "shebang",
        "mkdirp",
        "hlines",
        "colnames",
        "rownames",
        "var",
        "sep",
    }
)

USER_PATH_KEY = "user-path"
NO_CONVERSION_KEY = "no-conversion"
PRESERVE_STREAM_KEY = "preserve-stream"
SYSTEM_KEYS: frozenset[str] = frozenset({USER_PATH_KEY, NO_CONVERSION_KEY, PRESERVE_STREAM_KEY})

ATTACHMENT_TYPE_KEYS: frozenset[str] = frozenset({"attachment-type", "at"})
DATABASE_KEYS: frozenset[str] = frozenset({"database", "d"})
SCHEMA_KEYS: frozenset[str] = frozenset({"schema", "schema-multi"})

RESULTS_KEY = "results"
SILENT_MARKER = "silent"
_FALSE_VALUES = {"false", "no", "0"}


class OptionBucket:
    """Names of the classifier buckets."""

    FRAMEWORK = "framework"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(slots=True, frozen=True)
class Option:
    """A single request option; ``value`` of ``None`` marks a boolean flag."""

    key: str
    value: str | None = None

    @property
    def is_flag(self) -> bool:
        return self.value is None


@dataclass(slots=True, frozen=True)
class RequestOptions(Sequence[Option]):
    """Ordered option sequence; duplicate keys are preserved."""

    items: tuple[Option, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index):  # type: ignore[override]
        return self.items[index]

    def __iter__(self) -> Iterator[Option]:
        return iter(self.items)

    def keys(self) -> list[str]:
        return [option.key for option in self.items]

    def has(self, key: str) -> bool:
        return any(option.key == key for option in self.items)

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value of the last occurrence of ``key``."""

        for option in reversed(self.items):
            if option.key == key:
                return option.value
        return default

    def to_pairs(self) -> list[tuple[str, str | None]]:
        return [(option.key, option.value) for option in self.items]

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str | None] | Option]) -> RequestOptions:
        items: list[Option] = []
        for entry in pairs:
            if isinstance(entry, Option):
                items.append(entry)
                continue
            key, value = entry
            items.append(Option(_normalize_key(key), None if value is None else str(value)))
        return cls(tuple(items))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> RequestOptions:
        """Build options from a mapping; ``None`` and ``True`` become flags."""

        pairs: list[tuple[str, str | None]] = []
        for key, value in mapping.items():
            if value is None or value is True:
                pairs.append((key, None))
            else:
                pairs.append((key, str(value)))
        return cls.from_pairs(pairs)

    @classmethod
    def coerce(cls, value: RequestOptions | Mapping[str, object] | Iterable | None) -> RequestOptions:
        if value is None:
            return cls()
        if isinstance(value, RequestOptions):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        return cls.from_pairs(value)


@dataclass(slots=True, frozen=True)
class ClassifiedOptions:
    """Disjoint partition of a request's options."""

    framework: tuple[Option, ...] = ()
    system: tuple[Option, ...] = ()
    tool: tuple[Option, ...] = ()

    def __len__(self) -> int:
        return len(self.framework) + len(self.system) + len(self.tool)

    def bucket(self, name: str) -> tuple[Option, ...]:
        if name == OptionBucket.FRAMEWORK:
            return self.framework
        if name == OptionBucket.SYSTEM:
            return self.system
        if name == OptionBucket.TOOL:
            return self.tool
        raise KeyError(name)

    def system_value(self, key: str) -> str | None:
        for option in self.system:
            if option.key == key:
                return option.value
        return None

    def has_system(self, key: str) -> bool:
        return any(option.key == key for option in self.system)

    def has_tool(self, key: str) -> bool:
        return any(option.key == key for option in self.tool)


def bucket_for(key: str) -> str:
    """Return the bucket a key belongs to; unknown keys go to the tool."""

    if key in FRAMEWORK_KEYS:
        return OptionBucket.FRAMEWORK
    if key in SYSTEM_KEYS:
        return OptionBucket.SYSTEM
    return OptionBucket.TOOL


def classify_options(options: RequestOptions | Mapping[str, object] | Iterable | None) -> ClassifiedOptions:
    """Partition ``options`` into framework, system and tool buckets.

    Every option lands in exactly one bucket. Each bucket lists its options in
    reverse input order.
    """

    buckets: dict[str, deque[Option]] = {
        OptionBucket.FRAMEWORK: deque(),
        OptionBucket.SYSTEM: deque(),
        OptionBucket.TOOL: deque(),
    }
    for option in RequestOptions.coerce(options):
        buckets[bucket_for(option.key)].appendleft(option)
    return ClassifiedOptions(
        framework=tuple(buckets[OptionBucket.FRAMEWORK]),
        system=tuple(buckets[OptionBucket.SYSTEM]),
        tool=tuple(buckets[OptionBucket.TOOL]),
    )


def parse_header_arguments(text: str) -> RequestOptions:
    """Parse ``:key value :flag`` header arguments into :class:`RequestOptions`.

    Words following a key up to the next ``:key`` token are joined with single
    spaces to form its value; a key followed directly by another key is a flag.
    """

    try:
        tokens = deque(shlex.split(text or "", posix=True))
    except ValueError as exc:
        raise ValueError(f"Unable to parse header arguments: {exc}") from exc
    pairs: list[tuple[str, str | None]] = []
    while tokens:
        token = tokens.popleft()
        if not _is_key_token(token):
            raise ValueError(f"Expected a ':key' token, got {token!r}")
        words: list[str] = []
        while tokens and not _is_key_token(tokens[0]):
            words.append(tokens.popleft())
        pairs.append((token, " ".join(words) if words else None))
    return RequestOptions.from_pairs(pairs)


def is_silent(options: RequestOptions | ClassifiedOptions) -> bool:
    """Return ``True`` when the ``results`` option requests silence."""

    if isinstance(options, ClassifiedOptions):
        values = [option.value for option in options.framework if option.key == RESULTS_KEY]
    else:
        values = [option.value for option in options if option.key == RESULTS_KEY]
    return any(value is not None and SILENT_MARKER in value for value in values)


def is_schema_request(classified: ClassifiedOptions) -> bool:
    return any(classified.has_tool(key) for key in SCHEMA_KEYS)


def parse_flag_value(value: str | None, *, present: bool = True) -> bool:
    """Interpret a boolean-like option value.

    Absent options and the strings ``false``, ``no`` and ``0`` are false;
    anything else, including a bare flag, is true.
    """

    if not present:
        return False
    if value is None:
        return True
    return value.strip().lower() not in _FALSE_VALUES


def suppresses_conversion(classified: ClassifiedOptions) -> bool:
    return classified.has_system(NO_CONVERSION_KEY)


def preserves_stream(classified: ClassifiedOptions) -> bool:
    return parse_flag_value(
        classified.system_value(PRESERVE_STREAM_KEY),
        present=classified.has_system(PRESERVE_STREAM_KEY),
    )


def _normalize_key(key: str) -> str:
    return str(key).strip().lstrip(":")


def _is_key_token(token: str) -> bool:
    return len(token) > 1 and token.startswith(":")

