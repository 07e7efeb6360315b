"""Replace provisional streamed text with the post-processed response."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..services.settings import Settings
from .filters import TextFilter, json_pretty_printer, markdown_converter
from .notify import LoggingNotifier, Notifier
from .options import (
    SCHEMA_KEYS,
    ClassifiedOptions,
    is_schema_request,
    preserves_stream,
    suppresses_conversion,
)
from .request_types import LiveRequest, TerminalEvent
from .structured import inline_schema, validate_json, wrap_structured

__all__ = ["FinalizeResult", "ResultFinalizer"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FinalizeResult:
    """What finalization wrote back for a request."""

    raw_text: str
    text: str
    inserted: bool
    converted: bool = False
    notices: tuple[str, ...] = ()


class ResultFinalizer:
    """Runs once per request when its process reaches a terminal state.

    Errors from the document (for example a killed buffer) propagate to the
    caller; filter failures never do.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        markdown_filter: TextFilter | None = None,
        json_filter: TextFilter | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._markdown_filter = markdown_filter or markdown_converter(self._settings)
        self._json_filter = json_filter or json_pretty_printer(self._settings)
        self._notifier = notifier or LoggingNotifier()

    def finalize(self, request: LiveRequest, event: TerminalEvent) -> FinalizeResult:
        elapsed = request.elapsed(event.occurred_at)
        request.diagnostic.append_banner(event.description, elapsed)
        raw = request.diagnostic.response_text()

        classified = request.classified
        assert classified is not None
        silent = request.silent
        preserve = preserves_stream(classified)
        streamed = not silent and request.result_anchor is not None and request.stream_start is not None

        if streamed and not preserve:
            self._remove_provisional(request)

        if not event.finished:
            if streamed and preserve:
                return FinalizeResult(raw_text=raw, text=raw, inserted=False)
            self._insert(request, raw)
            return FinalizeResult(raw_text=raw, text=raw, inserted=True)

        if silent:
            return FinalizeResult(raw_text=raw, text=raw, inserted=False)
        if streamed and preserve:
            return FinalizeResult(raw_text=raw, text=raw, inserted=False)

        text, converted, notices = self._post_process(raw, classified)
        for notice in notices:
            request.diagnostic.append(f"Notice: {notice}\n")
            self._notifier.message(notice)
        self._insert(request, text)
        return FinalizeResult(
            raw_text=raw,
            text=text,
            inserted=True,
            converted=converted,
            notices=tuple(notices),
        )

    def _post_process(self, raw: str, classified: ClassifiedOptions) -> tuple[str, bool, list[str]]:
        notices: list[str] = []
        if suppresses_conversion(classified) or not self._settings.auto_convert:
            return raw, False, notices

        if is_schema_request(classified):
            result = self._json_filter(raw)
            if not result.ok:
                notices.append(f"{result.message}; inserting JSON as returned")
            if self._settings.validate_schema_output:
                notices.extend(self._schema_notices(result.text, classified))
            return wrap_structured(result.text, self._settings.markup), result.ok, notices

        result = self._markdown_filter(raw)
        if not result.ok:
            notices.append(f"{result.message}; inserting unconverted text")
        return result.text, result.ok, notices

    def _schema_notices(self, text: str, classified: ClassifiedOptions) -> list[str]:
        option = next(item for item in classified.tool if item.key in SCHEMA_KEYS)
        issues = validate_json(
            text,
            schema=inline_schema(option.value),
            multi=option.key == "schema-multi",
        )
        return [f"Structured response: {issue.message}" for issue in issues]

    def _remove_provisional(self, request: LiveRequest) -> None:
        start = request.stream_start
        end = request.result_anchor
        assert start is not None and end is not None
        if end.position <= start.position:
            return
        removed = request.document.delete_between(start, end)
        LOGGER.debug("Removed %d provisional characters", len(removed))

    def _insert(self, request: LiveRequest, text: str) -> None:
        if not text:
            return
        request.document.insert_at(request.anchor, text)
