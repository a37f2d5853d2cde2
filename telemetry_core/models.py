"""Models for telemetry data."""

from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class CpuVendor(str, Enum):
    """CPU vendor classification reported with each session."""

    INTEL = "Intel"
    AMD = "Amd"
    OTHER = "Other"


class BuildInfo(BaseModel):
    """Build identity of the instrumented application."""

    scm_desc: str = ""
    branch: str = ""
    revision: str = ""
    build_date: str = ""
    build_name: str = ""

    @property
    def is_dirty(self) -> bool:
        return "dirty" in self.scm_desc

    @classmethod
    def from_env(cls) -> BuildInfo:
        """Load build metadata injected by the build system."""
        return cls(
            scm_desc=os.environ.get("TELEMETRY_CORE_SCM_DESC", ""),
            branch=os.environ.get("TELEMETRY_CORE_SCM_BRANCH", ""),
            revision=os.environ.get("TELEMETRY_CORE_SCM_REV", ""),
            build_date=os.environ.get("TELEMETRY_CORE_BUILD_DATE", ""),
            build_name=os.environ.get("TELEMETRY_CORE_BUILD_NAME", ""),
        )


class CpuCaps(BaseModel):
    """Host CPU model strings and x86-64 extension flags."""

    cpu_string: str = ""
    brand_string: str = ""
    vendor: CpuVendor = CpuVendor.OTHER

    aes: bool = False
    avx: bool = False
    avx2: bool = False
    bmi1: bool = False
    bmi2: bool = False
    fma: bool = False
    fma4: bool = False
    sse: bool = False
    sse2: bool = False
    sse3: bool = False
    ssse3: bool = False
    sse4_1: bool = False
    sse4_2: bool = False


# Field name suffix -> CpuCaps attribute, in reporting order
CPU_EXTENSIONS = (
    ("AES", "aes"),
    ("AVX", "avx"),
    ("AVX2", "avx2"),
    ("BMI1", "bmi1"),
    ("BMI2", "bmi2"),
    ("FMA", "fma"),
    ("FMA4", "fma4"),
    ("SSE", "sse"),
    ("SSE2", "sse2"),
    ("SSE3", "sse3"),
    ("SSSE3", "ssse3"),
    ("SSE41", "sse4_1"),
    ("SSE42", "sse4_2"),
)


class FieldRecord(BaseModel):
    """A single visited field as it is submitted."""

    category: str
    name: str
    kind: str
    value: Any


class SessionPayload(BaseModel):
    """Session data sent to the remote service."""

    version: str
    telemetry_id: int = 0
    records: List[FieldRecord] = Field(default_factory=list)
    timestamp: float = Field(default_factory=lambda: datetime.now().timestamp())

    def properties(self) -> Dict[str, Any]:
        """Flatten the records into event properties; the last value per key wins."""
        props: Dict[str, Any] = {f"{r.category}/{r.name}": r.value for r in self.records}
        props["version"] = self.version
        props["field_count"] = len(self.records)
        return props
