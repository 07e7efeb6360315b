"""Tests for the diagnostic transcript."""

from __future__ import annotations

from datetime import datetime

from llmblock.llm.transcript import (
    OUTPUT_MARKER,
    DiagnosticLog,
    extract_response,
    format_completion_banner,
    format_start_banner,
)


def test_banners_have_fixed_format() -> None:
    assert format_start_banner(datetime(2024, 5, 1, 9, 3, 7)) == "--- LLM request started at 2024-05-01 09:03:07 ---\n"
    assert format_completion_banner("finished", 1.2345) == "--- Process finished after 1.23 seconds ---\n"


def test_header_then_output_then_banner() -> None:
    log = DiagnosticLog(name="*llm*")
    log.write_header("llm 'hi' ", datetime(2024, 5, 1, 9, 0, 0))
    log.append("Hello")
    log.append_banner("finished", 0.5)

    assert log.text == (
        "--- LLM request started at 2024-05-01 09:00:00 ---\n"
        "llm 'hi' \n\n"
        "Output:\n\n"
        "Hello\n"
        "--- Process finished after 0.50 seconds ---\n"
    )
    assert log.response_text() == "Hello"
    assert log.has_output_marker


def test_response_keeps_trailing_newline_from_output() -> None:
    log = DiagnosticLog()
    log.write_header("llm x ", datetime(2024, 1, 1))
    log.append("line\n")
    log.append_banner("finished", 0.1)
    assert log.response_text() == "line\n"


def test_response_may_contain_banner_like_text() -> None:
    log = DiagnosticLog()
    log.write_header("llm x ", datetime(2024, 1, 1))
    log.append("--- Process finished after 1.00 seconds ---\nreal end")
    log.append_banner("finished", 2.0)
    assert log.response_text() == "--- Process finished after 1.00 seconds ---\nreal end"


def test_extract_response_without_marker_returns_everything() -> None:
    assert extract_response("no marker here") == "no marker here"


def test_extract_response_from_plain_text() -> None:
    text = f"header\n{OUTPUT_MARKER}answer\n--- Process finished after 3.00 seconds ---\n"
    assert extract_response(text) == "answer"


def test_empty_output_yields_empty_response() -> None:
    log = DiagnosticLog()
    log.write_header("llm x ", datetime(2024, 1, 1))
    log.append_banner("exited abnormally with code 1", 0.0)
    assert log.response_text() == ""
