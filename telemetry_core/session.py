"""Telemetry session lifecycle.

A session gathers environment facts when it is created and closing facts when
it ends, then flushes everything through its backend. Sessions are single-use.

Example:
    with TelemetrySession() as session:
        run_application()
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from telemetry_core.backends import Backend, create_backend
from telemetry_core.config import TelemetryConfig
from telemetry_core.fields import FieldCollection, FieldType, FieldValue
from telemetry_core.identifier import TelemetryIdStore
from telemetry_core.models import CPU_EXTENSIONS, BuildInfo, CpuCaps
from telemetry_core.sources import AppLoader, LoaderResult, detect_cpu_caps, get_os_platform

logger = logging.getLogger("telemetry_core.session")


class SessionState(str, Enum):
    CONSTRUCTING = "constructing"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    CLOSED = "closed"


def current_time_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class TelemetrySession:
    """Collects the facts for one instrumentation lifetime."""

    def __init__(
        self,
        config: Optional[TelemetryConfig] = None,
        *,
        app_loader: Optional[AppLoader] = None,
        build_info: Optional[BuildInfo] = None,
        cpu_caps: Optional[CpuCaps] = None,
        id_store: Optional[TelemetryIdStore] = None,
        backend: Optional[Backend] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Start a session and record the start-of-session facts.

        Args:
            config: Telemetry configuration, or None to load from environment
            app_loader: Source of the running program's name
            build_info: Build identity (default: read from environment)
            cpu_caps: Host CPU description (default: detected)
            id_store: Identifier store (default: file under config.config_dir)
            backend: Backend to use (default: selected from config)
            clock: Returns the current time in milliseconds
        """
        self.state = SessionState.CONSTRUCTING
        self.config = config or TelemetryConfig.from_env()
        self.field_collection = FieldCollection()
        self._clock = clock or current_time_ms
        self.backend: Optional[Backend] = backend or create_backend(self.config)

        id_store = id_store or TelemetryIdStore(self.config.telemetry_id_path)

        # One-time top-level information
        telemetry_id = self._query("telemetry id", id_store.get_id)
        self.add_field(FieldType.NONE, "TelemetryId", telemetry_id or 0)

        # Session start information
        self.add_field(FieldType.SESSION, "Init_Time", self._now())
        if app_loader is not None:
            self._add_program_name(app_loader)

        if build_info is None:
            build_info = self._query("build info", BuildInfo.from_env) or BuildInfo()
        self._add_app_fields(build_info)

        if cpu_caps is None:
            cpu_caps = self._query("cpu caps", detect_cpu_caps) or CpuCaps()
        self._add_system_fields(cpu_caps)

        self._add_config_fields()

        self.state = SessionState.ACTIVE
        logger.debug(f"Telemetry session started with {len(self.field_collection)} fields")

    def _query(self, what: str, func: Callable[[], Any]) -> Any:
        try:
            return func()
        except Exception as e:
            logger.warning(f"Failed to read {what}: {e}")
            return None

    def _now(self) -> int:
        try:
            return int(self._clock())
        except Exception as e:
            logger.warning(f"Failed to read clock: {e}")
            return 0

    def _add_program_name(self, app_loader: AppLoader) -> None:
        try:
            result, program_name = app_loader.read_title()
        except Exception as e:
            logger.debug(f"Program name unavailable: {e}")
            return
        if result != LoaderResult.SUCCESS:
            logger.debug(f"Program name unavailable: {result}")
        elif not isinstance(program_name, str):
            logger.debug(f"Ignoring non-string program name: {program_name!r}")
        else:
            self.add_field(FieldType.SESSION, "ProgramName", program_name)

    def _add_app_fields(self, build_info: BuildInfo) -> None:
        self.add_field(FieldType.APP, "Git_IsDirty", build_info.is_dirty)
        self.add_field(FieldType.APP, "Git_Branch", build_info.branch)
        self.add_field(FieldType.APP, "Git_Revision", build_info.revision)
        self.add_field(FieldType.APP, "BuildDate", build_info.build_date)
        self.add_field(FieldType.APP, "BuildName", build_info.build_name)

    def _add_system_fields(self, cpu_caps: CpuCaps) -> None:
        self.add_field(FieldType.USER_SYSTEM, "CPU_Model", cpu_caps.cpu_string)
        self.add_field(FieldType.USER_SYSTEM, "CPU_BrandString", cpu_caps.brand_string)
        self.add_field(FieldType.USER_SYSTEM, "CPU_Vendor", cpu_caps.vendor.value)
        for suffix, attr in CPU_EXTENSIONS:
            self.add_field(
                FieldType.USER_SYSTEM, f"CPU_Extension_x64_{suffix}", getattr(cpu_caps, attr)
            )
        self.add_field(FieldType.USER_SYSTEM, "OsPlatform", get_os_platform())

    def _add_config_fields(self) -> None:
        self.add_field(FieldType.USER_CONFIG, "Core_CpuCore", int(self.config.cpu_core))
        self.add_field(
            FieldType.USER_CONFIG, "Renderer_ResolutionFactor", int(self.config.resolution_factor)
        )
        self.add_field(
            FieldType.USER_CONFIG, "Renderer_ToggleFramelimit", bool(self.config.toggle_framelimit)
        )

    def add_field(self, category: FieldType, name: str, value: FieldValue) -> None:
        """Add a field to the session.

        Raises:
            RuntimeError: If the session has already been closed
        """
        if self.state is SessionState.CLOSED:
            raise RuntimeError("Cannot add fields to a closed telemetry session")
        self.field_collection.add(category, name, value)

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def close(self) -> None:
        """End the session and submit its fields. Calling it again does nothing."""
        if self.state is not SessionState.ACTIVE:
            return

        self.state = SessionState.FINALIZING
        self.add_field(FieldType.SESSION, "Shutdown_Time", self._now())

        backend, self.backend = self.backend, None
        try:
            try:
                self.field_collection.accept(backend)
            except Exception as e:
                logger.warning(f"Failed to deliver telemetry fields: {e}")
            backend.complete()
        except Exception as e:
            logger.warning(f"Failed to complete telemetry session: {e}")
        finally:
            self.state = SessionState.CLOSED

    end = close

    def __enter__(self) -> TelemetrySession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
