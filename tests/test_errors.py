"""Tests for pipeline error types."""

from __future__ import annotations

import pytest

from llmblock.llm.errors import ConfigurationError, ErrorCode, InvalidTransitionError, LLMBlockError


class TestErrorCode:
    """Tests for ErrorCode constants."""

    def test_command_errors(self) -> None:
        assert ErrorCode.INVALID_OPTION_VALUE == "invalid_option_value"
        assert ErrorCode.PATH_EXPANSION_FAILED == "path_expansion_failed"

    def test_lifecycle_errors(self) -> None:
        assert ErrorCode.INVALID_TRANSITION == "invalid_transition"
        assert ErrorCode.DUPLICATE_REQUEST == "duplicate_request"


class TestLLMBlockError:
    def test_str_and_dict(self) -> None:
        error = LLMBlockError(error_code="boom", message="Something broke", details={"k": 1})
        assert str(error) == "[boom] Something broke"
        assert error.to_dict() == {"error": "boom", "message": "Something broke", "details": {"k": 1}}

    def test_is_raisable(self) -> None:
        with pytest.raises(LLMBlockError) as excinfo:
            raise LLMBlockError(error_code="boom", message="raised")
        assert excinfo.value.message == "raised"
        assert excinfo.value.severity == "error"


class TestConfigurationError:
    def test_defaults(self) -> None:
        error = ConfigurationError()
        assert error.error_code == ErrorCode.INVALID_OPTION_VALUE
        assert error.to_dict() == {"error": "invalid_option_value", "message": "Invalid request configuration"}

    def test_option_is_reported(self) -> None:
        error = ConfigurationError(error_code=ErrorCode.PATH_EXPANSION_FAILED, message="bad path", option="database")
        assert error.to_dict()["option"] == "database"
        assert isinstance(error, LLMBlockError)


class TestInvalidTransitionError:
    def test_is_a_warning(self) -> None:
        error = InvalidTransitionError()
        assert error.severity == "warning"
        assert error.error_code == ErrorCode.INVALID_TRANSITION
