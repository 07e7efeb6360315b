"""Service layer helpers (settings, telemetry)."""

from .settings import Settings, SettingsLoader, load_settings
from .telemetry import RequestSummary, RequestTelemetrySink

__all__ = [
    "RequestSummary",
    "RequestTelemetrySink",
    "Settings",
    "SettingsLoader",
    "load_settings",
]
