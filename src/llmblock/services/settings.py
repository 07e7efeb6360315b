"""Settings dataclass and read-only loading helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

__all__ = [
    "Settings",
    "SettingsLoader",
    "default_settings_path",
    "load_settings",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".llmblock"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.yaml"
_SETTINGS_PATH_ENV = "LLMBLOCK_SETTINGS"
_ENV_OVERRIDES: Mapping[str, str] = {
    "LLMBLOCK_PROGRAM": "program",
    "LLMBLOCK_MARKUP": "markup",
    "LLMBLOCK_USER_PATH": "user_path",
    "LLMBLOCK_EVENT_LOG_DIR": "event_log_dir",
    "LLMBLOCK_LOG_DIR": "log_dir",
    "LLMBLOCK_LOG_LEVEL": "log_level",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "LLMBLOCK_AUTO_CONVERT": "auto_convert",
    "LLMBLOCK_VALIDATE_SCHEMA": "validate_schema_output",
    "LLMBLOCK_DEBUG_EVENT_LOGGING": "debug_event_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "LLMBLOCK_FILTER_TIMEOUT": "filter_timeout",
}
_LIST_ENV_OVERRIDES: Mapping[str, str] = {
    "LLMBLOCK_CONVERTER": "converter_command",
    "LLMBLOCK_JSON_PRINTER": "json_printer_command",
}
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration for running prompt blocks."""

    program: str = "llm"
    user_path: str | None = None
    auto_convert: bool = True
    markup: str = "org"
    converter_command: list[str] = field(
        default_factory=lambda: ["pandoc", "--from", "markdown", "--to", "{markup}"]
    )
    json_printer_command: list[str] = field(default_factory=lambda: ["jq", "."])
    filter_timeout: float = 30.0
    validate_schema_output: bool = True
    debug_event_logging: bool = False
    event_log_dir: str | None = None
    telemetry_capacity: int = 200
    log_level: str = "INFO"
    log_dir: str | None = None

    def resolved_converter_command(self) -> list[str]:
        """Return the converter argv with ``{markup}`` placeholders filled in."""

        return [part.replace("{markup}", self.markup) for part in self.converter_command]


def default_settings_path() -> Path:
    override = os.environ.get(_SETTINGS_PATH_ENV)
    return Path(override).expanduser() if override else _DEFAULT_SETTINGS_PATH


class SettingsLoader:
    """Loads :class:`Settings` from an optional YAML (or JSON) file.

    Values are layered: dataclass defaults, then the file, then explicit
    overrides, then ``LLMBLOCK_*`` environment variables. Nothing is written
    back to disk.
    """

    def __init__(self, path: Path | str | None = None, *, env: Mapping[str, str] | None = None) -> None:
        self._path = Path(path).expanduser() if path else default_settings_path()
        self._env = env if env is not None else os.environ

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        payload = self._read_payload()
        settings = Settings()
        if payload:
            try:
                settings = Settings(**_filter_fields(payload))
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")
        return self._apply_env_overrides(settings)

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        parser = YAML(typ="safe")
        try:
            data = parser.load(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except YAMLError as exc:
            LOGGER.warning("Settings file %s is not valid YAML: %s", self._path, exc)
            return {}
        if not isinstance(data, Mapping):
            if data is not None:
                LOGGER.warning("Settings file %s must contain a mapping", self._path)
            return {}
        return {str(key).replace("-", "_"): value for key, value in data.items()}

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str,
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = self._env.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = self._env.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = self._env.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        for env_name, field_name in _LIST_ENV_OVERRIDES.items():
            value = self._env.get(env_name)
            if value is not None and value.strip():
                overrides[field_name] = value.split()
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def load_settings(
    path: Path | str | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Convenience wrapper around :class:`SettingsLoader`."""

    return SettingsLoader(path, env=env).load(overrides=overrides)


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            LOGGER.debug("Ignoring unknown settings key %s", key)
            continue
        result[key] = value
    return result
