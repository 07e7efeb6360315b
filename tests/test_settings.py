"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

from llmblock.services.settings import Settings, SettingsLoader, default_settings_path, load_settings


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "absent.yaml", env={})
    assert settings == Settings()
    assert settings.resolved_converter_command() == ["pandoc", "--from", "markdown", "--to", "org"]


def test_yaml_file_is_loaded_with_dashed_keys(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "program: /usr/local/bin/llm\n"
        "markup: markdown\n"
        "auto-convert: false\n"
        "json-printer-command: [jq, -S, .]\n"
        "unknown_key: 1\n",
        encoding="utf-8",
    )
    settings = load_settings(path, env={})
    assert settings.program == "/usr/local/bin/llm"
    assert settings.markup == "markdown"
    assert settings.auto_convert is False
    assert settings.json_printer_command == ["jq", "-S", "."]
    assert settings.resolved_converter_command()[-1] == "markdown"


def test_invalid_yaml_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("program: [unterminated\n", encoding="utf-8")
    assert load_settings(path, env={}) == Settings()


def test_non_mapping_payload_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_settings(path, env={}) == Settings()


def test_overrides_then_environment_take_precedence(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("markup: markdown\nfilter_timeout: 10\n", encoding="utf-8")
    env = {
        "LLMBLOCK_MARKUP": "org",
        "LLMBLOCK_AUTO_CONVERT": "off",
        "LLMBLOCK_FILTER_TIMEOUT": "2.5",
        "LLMBLOCK_CONVERTER": "pandoc -f gfm -t {markup}",
        "LLMBLOCK_DEBUG_EVENT_LOGGING": "yes",
    }
    settings = SettingsLoader(path, env=env).load(overrides={"program": "llm-dev", "markup": "gfm", "bogus": 1})
    assert settings.program == "llm-dev"
    assert settings.markup == "org"
    assert settings.auto_convert is False
    assert settings.filter_timeout == 2.5
    assert settings.debug_event_logging is True
    assert settings.resolved_converter_command() == ["pandoc", "-f", "gfm", "-t", "org"]


def test_invalid_float_environment_value_is_ignored(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "none.yaml", env={"LLMBLOCK_FILTER_TIMEOUT": "soon"})
    assert settings.filter_timeout == 30.0


def test_default_path_honours_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LLMBLOCK_SETTINGS", str(tmp_path / "custom.yaml"))
    assert default_settings_path() == tmp_path / "custom.yaml"
    assert SettingsLoader(env={}).path == tmp_path / "custom.yaml"


def test_logging_settings_from_environment(tmp_path: Path) -> None:
    env = {"LLMBLOCK_LOG_LEVEL": "debug", "LLMBLOCK_LOG_DIR": str(tmp_path / "logs")}
    settings = load_settings(tmp_path / "none.yaml", env=env)
    assert settings.log_level == "debug"
    assert settings.log_dir == str(tmp_path / "logs")
