"""Anonymous per-installation telemetry identifier.

The identifier is stored as exactly 8 raw bytes (an unsigned 64-bit value in
native byte order) so that every reader and writer agrees on the record size.
This ID is not tied to any personal information.
"""

from __future__ import annotations

import logging
import os
import secrets
import struct
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

from telemetry_core.config import TelemetryConfig

logger = logging.getLogger("telemetry_core.identifier")

ID_FORMAT = "=Q"
ID_SIZE = struct.calcsize(ID_FORMAT)


def generate_telemetry_id() -> int:
    """Generate a new random 64-bit identifier."""
    return secrets.randbits(64)


class TelemetryIdStore:
    """Reads and writes the telemetry identifier file."""

    def __init__(
        self,
        path: Union[str, Path],
        generator: Optional[Callable[[], int]] = None,
    ):
        """Initialize the store.

        Args:
            path: Location of the identifier file
            generator: Callable producing new identifiers (default: random 64-bit)
        """
        self.path = Path(path)
        self._generate = generator or generate_telemetry_id

    def get_id(self) -> int:
        """Return the stored identifier, creating it on first use.

        Returns:
            int: The identifier, or 0 if the file could not be opened
        """
        try:
            with open(self.path, "rb") as f:
                data = f.read(ID_SIZE)
        except FileNotFoundError:
            return self._create_id()
        except OSError as e:
            logger.error(f"failed to open telemetry_id: {self.path} ({e})")
            return 0
        if len(data) != ID_SIZE:
            logger.error(f"telemetry_id is truncated ({len(data)} bytes): {self.path}")
            return 0
        return struct.unpack(ID_FORMAT, data)[0]

    def _create_id(self) -> int:
        telemetry_id = self._generate() & 0xFFFFFFFFFFFFFFFF
        try:
            self._write(telemetry_id)
        except OSError as e:
            logger.error(f"failed to open telemetry_id: {self.path} ({e})")
            return 0
        logger.debug(f"Created new telemetry ID in {self.path}")
        return telemetry_id

    def regenerate_id(self) -> int:
        """Replace the stored identifier with a freshly generated one.

        Returns:
            int: The new identifier, or 0 if it could not be written
        """
        new_id = self._generate() & 0xFFFFFFFFFFFFFFFF
        try:
            self._write(new_id)
        except OSError as e:
            logger.error(f"failed to open telemetry_id: {self.path} ({e})")
            return 0
        logger.info("Telemetry ID regenerated")
        return new_id

    def _write(self, telemetry_id: int) -> None:
        # Write to a sibling temp file and swap it in so readers never see a partial record.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".telemetry_id.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(struct.pack(ID_FORMAT, telemetry_id))
            os.replace(tmp_name, self.path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


def get_telemetry_id(config: Optional[TelemetryConfig] = None) -> int:
    """Read or create the identifier at the configured location."""
    config = config or TelemetryConfig.from_env()
    return TelemetryIdStore(config.telemetry_id_path).get_id()


def regenerate_telemetry_id(config: Optional[TelemetryConfig] = None) -> int:
    """Regenerate the identifier at the configured location."""
    config = config or TelemetryConfig.from_env()
    return TelemetryIdStore(config.telemetry_id_path).regenerate_id()
