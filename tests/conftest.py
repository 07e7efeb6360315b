"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from llmblock.editor.document_model import TextBuffer
from llmblock.services import telemetry
from llmblock.services.settings import Settings

from tests.helpers import FakeFilter, RecordingNotifier


@pytest.fixture
def document() -> TextBuffer:
    return TextBuffer("#+begin_src llm\nSay hi\n#+end_src\n", name="notes.org")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(event_log_dir=str(tmp_path / "events"))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def markdown_filter() -> FakeFilter:
    return FakeFilter(lambda text: text.replace("**", "*"), name="markdown converter")


@pytest.fixture
def json_filter() -> FakeFilter:
    return FakeFilter(name="JSON pretty-printer")


@pytest.fixture(autouse=True)
def _reset_telemetry_listeners():
    yield
    telemetry.clear_event_listeners()
