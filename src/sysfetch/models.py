"""Data models for sysfetch."""

from dataclasses import dataclass
from typing import ClassVar

UNKNOWN = "Unknown"
UNAVAILABLE = "Unavailable"
UNSUPPORTED_REFRESH_RATE = -1


@dataclass(slots=True, frozen=True)
class GpuInfo:
    """First GPU found on the host."""

    model: str
    memory: str  # Formatted size or raw tool output

    UNKNOWN: ClassVar["GpuInfo"]


GpuInfo.UNKNOWN = GpuInfo(model=UNKNOWN, memory=UNKNOWN)


@dataclass(slots=True, frozen=True)
class DisplayInfo:
    """Connected displays and the primary display mode."""

    count: int
    width: int
    height: int
    refresh_rate: int  # Hz, -1 when the platform does not report it

    UNKNOWN: ClassVar["DisplayInfo"]


DisplayInfo.UNKNOWN = DisplayInfo(
    count=0, width=0, height=0, refresh_rate=UNSUPPORTED_REFRESH_RATE
)


@dataclass(slots=True, frozen=True)
class HostSnapshot:
    """Immutable snapshot of the host, produced once per collection."""

    user_name: str
    host_name: str
    os_name: str
    os_version: str
    os_arch: str
    runtime_version: str
    runtime_vendor: str
    local_ip: str
    public_ip: str
    cpu_cores: int
    cpu_model: str
    cpu_load: float  # 0.0 - 100.0
    gpu_model: str
    gpu_memory: str
    memory_total: int  # Bytes
    memory_free: int
    memory_used: int
    storage_total: int  # Bytes, summed over mount roots
    storage_free: int
    storage_used: int
    display_count: int
    display_width: int
    display_height: int
    refresh_rate: int

    @property
    def resolution(self) -> str:
        """Primary display resolution as WIDTHxHEIGHT."""
        if self.display_width <= 0 or self.display_height <= 0:
            return UNKNOWN
        return f"{self.display_width}x{self.display_height}"
