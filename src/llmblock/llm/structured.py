"""Helpers for schema (structured JSON) responses."""

from __future__ import annotations

import json
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any, Iterable, Sequence

import jsonschema

__all__ = [
    "DuplicateJSONKeyError",
    "ValidationError",
    "inline_schema",
    "validate_json",
    "wrap_structured",
]

MAX_SCHEMA_ERRORS = 25

_FENCES: dict[str, tuple[str, str]] = {
    "org": ("#+begin_src json\n", "#+end_src\n"),
    "markdown": ("```json\n", "```\n"),
    "gfm": ("```json\n", "```\n"),
}


@dataclass(slots=True)
class ValidationError:
    """A problem found in a structured response."""

    message: str
    line: int | None = None


class DuplicateJSONKeyError(ValueError):
    """Raised when a duplicate key is encountered during JSON parsing."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Duplicate key '{key}' found in JSON object.")
        self.key = key


def wrap_structured(text: str, markup: str = "org") -> str:
    """Wrap JSON ``text`` in a code block tagged ``json`` for ``markup``."""

    opening, closing = _FENCES.get(markup, _FENCES["markdown"])
    body = text if text.endswith("\n") else f"{text}\n"
    return f"{opening}{body}{closing}"


def inline_schema(value: str | None) -> dict[str, Any] | None:
    """Return ``value`` as a schema when it is an inline JSON object.

    Concise schema strings (``name, age int``) and stored schema ids are left
    to the external tool and yield ``None``.
    """

    if not value:
        return None
    raw = value.strip()
    if not raw.startswith("{"):
        return None
    try:
        parsed = json.loads(raw)
    except JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def validate_json(text: str, *, schema: dict[str, Any] | None = None, multi: bool = False) -> list[ValidationError]:
    """Validate JSON content and return any issues.

    With ``multi`` the schema describes one item of an ``{"items": [...]}``
    envelope, matching how multi-schema responses are shaped.
    """

    raw = (text or "").strip()
    if not raw:
        return [ValidationError(message="Structured response is empty")]

    try:
        parsed = json.loads(raw, object_pairs_hook=_NoDuplicateKeys.dict_factory)
    except DuplicateJSONKeyError as exc:
        return [ValidationError(message=str(exc))]
    except JSONDecodeError as exc:
        return [ValidationError(message=_format_json_decode_message(exc), line=exc.lineno)]

    if not schema:
        return []
    if multi:
        schema = {
            "type": "object",
            "properties": {"items": {"type": "array", "items": schema}},
            "required": ["items"],
        }

    validator_cls = jsonschema.validators.validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except jsonschema.exceptions.SchemaError as exc:
        return [ValidationError(message=f"Invalid JSON schema: {exc.message}")]

    errors: list[ValidationError] = []
    for issue in validator_cls(schema).iter_errors(parsed):
        path = _format_schema_path(issue.absolute_path)
        msg = issue.message
        if path:
            msg = f"{path}: {msg}"
        errors.append(ValidationError(message=msg))
        if len(errors) >= MAX_SCHEMA_ERRORS:
            errors.append(ValidationError(message="Too many validation errors; stopping early."))
            break
    return errors


class _NoDuplicateKeys(dict):
    @staticmethod
    def dict_factory(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
        sentinel: dict[str, Any] = {}
        for key, value in pairs:
            if key in sentinel:
                raise DuplicateJSONKeyError(key)
            sentinel[key] = value
        return sentinel


def _format_json_decode_message(exc: JSONDecodeError) -> str:
    lines = exc.doc.splitlines() if exc.doc else []
    snippet = lines[exc.lineno - 1].strip() if 0 < exc.lineno <= len(lines) else ""
    detail = exc.msg
    if snippet:
        return f"{detail} (line {exc.lineno}, column {exc.colno}): {snippet}"
    return f"{detail} (line {exc.lineno}, column {exc.colno})"


def _format_schema_path(path: Sequence[Any]) -> str:
    if not path:
        return ""
    components: list[str] = []
    for segment in path:
        if isinstance(segment, int):
            if components:
                components[-1] = f"{components[-1]}[{segment}]"
            else:
                components.append(f"[{segment}]")
        else:
            components.append(str(segment))
    return ".".join(filter(None, components))
