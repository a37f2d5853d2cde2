"""Default data sources for session facts.

These cover the host-level facts a session reports. Applications with better
knowledge (their own loader, build stamps) pass their own objects to
``TelemetrySession`` instead.
"""

from __future__ import annotations

import logging
import platform
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Protocol, Set, Tuple

from telemetry_core.models import CpuCaps, CpuVendor

logger = logging.getLogger("telemetry_core.sources")

CPUINFO_PATH = Path("/proc/cpuinfo")

# CpuCaps attribute -> /proc/cpuinfo flag name
_CPUINFO_FLAGS = {
    "aes": "aes",
    "avx": "avx",
    "avx2": "avx2",
    "bmi1": "bmi1",
    "bmi2": "bmi2",
    "fma": "fma",
    "fma4": "fma4",
    "sse": "sse",
    "sse2": "sse2",
    "sse3": "pni",
    "ssse3": "ssse3",
    "sse4_1": "sse4_1",
    "sse4_2": "sse4_2",
}


class LoaderResult(str, Enum):
    """Outcome of an application loader query."""

    SUCCESS = "success"
    ERROR = "error"
    NOT_IMPLEMENTED = "not_implemented"


class AppLoader(Protocol):
    """Anything that can report the name of the program being run."""

    def read_title(self) -> Tuple[LoaderResult, str]:
        ...


class StaticAppLoader:
    """Loader that reports a fixed program name, or nothing."""

    def __init__(self, title: Optional[str] = None):
        self.title = title

    def read_title(self) -> Tuple[LoaderResult, str]:
        if not self.title:
            return LoaderResult.NOT_IMPLEMENTED, ""
        return LoaderResult.SUCCESS, self.title


def classify_vendor(vendor_id: str) -> CpuVendor:
    """Map a CPUID vendor string to one of Intel, Amd or Other."""
    if vendor_id == "GenuineIntel":
        return CpuVendor.INTEL
    if vendor_id in ("AuthenticAMD", "AMDisbetter!"):
        return CpuVendor.AMD
    return CpuVendor.OTHER


def parse_cpuinfo(lines: Iterable[str]) -> CpuCaps:
    """Build CPU caps from the first processor block of /proc/cpuinfo."""
    info = {}
    for line in lines:
        if not line.strip():
            if info:
                break
            continue
        key, sep, value = line.partition(":")
        if sep:
            info[key.strip()] = value.strip()

    flags: Set[str] = set(info.get("flags", "").split())
    vendor_id = info.get("vendor_id", "")
    caps = {attr: flag in flags for attr, flag in _CPUINFO_FLAGS.items()}
    return CpuCaps(
        cpu_string=vendor_id,
        brand_string=info.get("model name", ""),
        vendor=classify_vendor(vendor_id),
        **caps,
    )


def detect_cpu_caps() -> CpuCaps:
    """Detect host CPU capabilities.

    Reads /proc/cpuinfo where it exists; elsewhere only the processor name
    from the platform module is known and every extension flag is False.
    """
    try:
        with open(CPUINFO_PATH, "r", encoding="utf-8", errors="replace") as f:
            return parse_cpuinfo(f)
    except OSError as e:
        logger.debug(f"Could not read {CPUINFO_PATH}: {e}")

    processor = platform.processor()
    return CpuCaps(cpu_string=processor, brand_string=processor, vendor=classify_vendor(processor))


def get_os_platform() -> str:
    """Name of the host OS family as reported in telemetry."""
    if sys.platform == "darwin":
        return "Apple"
    if sys.platform.startswith("win"):
        return "Windows"
    if sys.platform.startswith("linux"):
        return "Linux"
    return "Unknown"
