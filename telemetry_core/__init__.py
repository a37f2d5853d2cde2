"""This package collects anonymous diagnostic facts about a running process.

It provides a low-overhead way to gather session telemetry and hand it to a
discarding or remote-submitting backend.
"""

__version__ = "0.1.0"

from telemetry_core.config import (
    TelemetryConfig,
    is_telemetry_globally_disabled,
    set_telemetry_log_level,
)
from telemetry_core.fields import Field, FieldCollection, FieldType, FieldValueKind
from telemetry_core.backends import Backend, NullBackend, PostHogBackend, create_backend
from telemetry_core.identifier import (
    TelemetryIdStore,
    get_telemetry_id,
    regenerate_telemetry_id,
)
from telemetry_core.models import BuildInfo, CpuCaps, CpuVendor
from telemetry_core.sources import AppLoader, LoaderResult, StaticAppLoader
from telemetry_core.session import SessionState, TelemetrySession
from telemetry_core.verify import verify_login

# Set telemetry loggers to the level requested via environment variable
set_telemetry_log_level()

__all__ = [
    "__version__",
    "AppLoader",
    "Backend",
    "BuildInfo",
    "CpuCaps",
    "CpuVendor",
    "Field",
    "FieldCollection",
    "FieldType",
    "FieldValueKind",
    "LoaderResult",
    "NullBackend",
    "PostHogBackend",
    "SessionState",
    "StaticAppLoader",
    "TelemetryConfig",
    "TelemetryIdStore",
    "TelemetrySession",
    "create_backend",
    "get_telemetry_id",
    "is_telemetry_globally_disabled",
    "regenerate_telemetry_id",
    "verify_login",
]
