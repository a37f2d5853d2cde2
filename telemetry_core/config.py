"""Configuration for telemetry collection.

Values are read from environment variables so the hosting application can
control telemetry without touching code.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("telemetry_core.config")

ENV_PREFIX = "TELEMETRY_CORE_"
TRUTHY_VALUES = ("1", "true", "yes", "on")

DEFAULT_TELEMETRY_ENDPOINT_URL = "https://eu.i.posthog.com"
DEFAULT_VERIFY_ENDPOINT_URL = ""
DEFAULT_VERIFY_TIMEOUT = 10.0


def _env(name: str, default: str = "") -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_flag(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.strip().lower() in TRUTHY_VALUES


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {ENV_PREFIX}{name}: {raw!r}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {ENV_PREFIX}{name}: {raw!r}")
        return default


def default_config_dir() -> Path:
    """Return the per-user configuration directory for this library."""
    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_home) if xdg_home else Path.home() / ".config"
    return base / "telemetry-core"


def is_telemetry_globally_disabled() -> bool:
    """Check if telemetry is globally disabled via environment variables.

    Returns:
        bool: True if telemetry is globally disabled, False otherwise
    """
    telemetry_enabled = _env("ENABLED", "true").lower()
    return telemetry_enabled not in TRUTHY_VALUES


@dataclass
class TelemetryConfig:
    """Configuration for telemetry collection."""

    enabled: bool = True  # Default to enabled (opt-out)
    endpoint_url: str = DEFAULT_TELEMETRY_ENDPOINT_URL
    verify_endpoint_url: str = DEFAULT_VERIFY_ENDPOINT_URL
    username: str = ""
    token: str = ""
    config_dir: Path = field(default_factory=default_config_dir)
    verify_timeout: float = DEFAULT_VERIFY_TIMEOUT

    # User configuration values reported with each session
    cpu_core: int = 0
    resolution_factor: int = 1
    toggle_framelimit: bool = True

    @classmethod
    def from_env(cls) -> TelemetryConfig:
        """Load config from environment variables."""
        config_dir = _env("CONFIG_DIR")
        return cls(
            enabled=not is_telemetry_globally_disabled(),
            endpoint_url=_env("ENDPOINT_URL", DEFAULT_TELEMETRY_ENDPOINT_URL),
            verify_endpoint_url=_env("VERIFY_ENDPOINT_URL", DEFAULT_VERIFY_ENDPOINT_URL),
            username=_env("USERNAME"),
            token=_env("TOKEN"),
            config_dir=Path(config_dir) if config_dir else default_config_dir(),
            verify_timeout=_env_float("VERIFY_TIMEOUT", DEFAULT_VERIFY_TIMEOUT),
            cpu_core=_env_int("CPU_CORE", 0),
            resolution_factor=_env_int("RESOLUTION_FACTOR", 1),
            toggle_framelimit=_env_flag("TOGGLE_FRAMELIMIT", True),
        )

    @property
    def telemetry_id_path(self) -> Path:
        return Path(self.config_dir) / "telemetry_id"

    def has_credentials(self) -> bool:
        """Check that everything the remote backend needs is configured."""
        return bool(self.endpoint_url and self.username and self.token)

    def remote_enabled(self) -> bool:
        """Decide whether sessions should submit to the remote service.

        Missing credentials turn remote submission off instead of failing later.
        """
        if not self.enabled:
            return False
        if not self.has_credentials():
            logger.warning("Telemetry enabled but endpoint, username or token is missing")
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary, leaving out the token."""
        return {
            "enabled": self.enabled,
            "endpoint_url": self.endpoint_url,
            "verify_endpoint_url": self.verify_endpoint_url,
            "username": self.username,
            "config_dir": str(self.config_dir),
            "cpu_core": self.cpu_core,
            "resolution_factor": self.resolution_factor,
            "toggle_framelimit": self.toggle_framelimit,
        }


def set_telemetry_log_level(level: Optional[int] = None) -> None:
    """Set the logging level for telemetry loggers to reduce console output.

    By default, checks the TELEMETRY_CORE_LOG_LEVEL environment variable
    ("DEBUG", "INFO", "WARNING" or "ERROR") and falls back to WARNING, so
    telemetry logs only show up when explicitly requested.

    Args:
        level: The logging level to set (overrides environment variable if provided)
    """
    if level is None:
        env_level = _env("LOG_LEVEL", "WARNING").upper()
        level = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
        }.get(env_level, logging.WARNING)

    for logger_name in ("telemetry_core", "posthog"):
        logging.getLogger(logger_name).setLevel(level)
