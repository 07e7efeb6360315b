"""Tests for external text filters."""

from __future__ import annotations

import sys

import pytest

from llmblock.llm.filters import CommandFilter, json_pretty_printer, markdown_converter
from llmblock.services.settings import Settings


def test_successful_filter_returns_stdout() -> None:
    upper = CommandFilter([sys.executable, "-c", "import sys; sys.stdout.write(sys.stdin.read().upper())"])
    result = upper("hello")
    assert result.ok
    assert result.text == "HELLO"
    assert result.returncode == 0


def test_missing_program_keeps_original_text() -> None:
    result = CommandFilter(["llmblock-definitely-missing-binary"], name="converter")("keep me")
    assert not result.ok
    assert result.text == "keep me"
    assert result.message == "converter is not installed"


def test_non_zero_exit_reports_last_stderr_line() -> None:
    failing = CommandFilter(
        [sys.executable, "-c", "import sys; sys.stderr.write('first\\nbad input\\n'); sys.exit(3)"],
        name="jq",
    )
    result = failing("{}")
    assert not result.ok
    assert result.text == "{}"
    assert result.returncode == 3
    assert result.message == "jq exited with code 3: bad input"


def test_timeout_is_reported() -> None:
    slow = CommandFilter([sys.executable, "-c", "import time; time.sleep(5)"], name="slow", timeout=0.2)
    result = slow("text")
    assert not result.ok
    assert "timed out" in result.message


def test_empty_argv_is_rejected() -> None:
    with pytest.raises(ValueError):
        CommandFilter([])


def test_factories_follow_settings() -> None:
    settings = Settings(markup="markdown", filter_timeout=5.0, json_printer_command=["jq", "-S", "."])
    converter = markdown_converter(settings)
    assert converter.argv == ["pandoc", "--from", "markdown", "--to", "markdown"]
    assert converter.timeout == 5.0
    assert json_pretty_printer(settings).argv == ["jq", "-S", "."]
