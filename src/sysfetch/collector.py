"""Host fact collection for sysfetch."""

import getpass
import logging
import math
import platform
import socket
import threading
from collections.abc import Callable, Sequence
from typing import TypeVar

import psutil
import requests

from sysfetch.models import UNAVAILABLE, UNKNOWN, DisplayInfo, GpuInfo, HostSnapshot
from sysfetch.network import IP_ENDPOINTS, fetch_public_ip, local_ip_address
from sysfetch.probes import PlatformProbe, select_probe

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Storage totals must fit a signed 64-bit byte count.
MAX_BYTES = 2**63 - 1


class CollectionError(Exception):
    """The host refused to report a fact every snapshot requires."""


class CollectionCancelled(CollectionError):
    """The caller abandoned the collection before it finished."""


def normalize_load(value: float) -> float:
    """Clamp a raw CPU load reading into [0, 100]; NaN and negatives become 0."""
    if math.isnan(value) or value < 0:
        return 0.0
    return min(float(value), 100.0)


def checked_add(left: int, right: int) -> int:
    """Add two byte counts, refusing to exceed MAX_BYTES."""
    total = left + right
    if total > MAX_BYTES:
        raise OverflowError(f"byte count {left} + {right} exceeds {MAX_BYTES}")
    return total


def _isolated(label: str, probe: Callable[[], T], default: T) -> T:
    """Run one probe, substituting default for any failure."""
    try:
        return probe()
    except Exception as exc:
        logger.warning("%s probe failed: %s", label, exc)
        return default


def _check_stop(stop: threading.Event | None) -> None:
    if stop is not None and stop.is_set():
        raise CollectionCancelled("collection cancelled")


def _or_unknown(value: str | None) -> str:
    return value if value else UNKNOWN


class HostInfoCollector:
    """
    Collects a HostSnapshot on demand.

    Every sub-probe contains its own failures and falls back to a sentinel.
    Only a missing processor count (CollectionError) or a storage total that
    overflows (OverflowError) fails the whole collection.

    The collector keeps no state between calls other than its configuration,
    so collect() may be called again at any time.
    """

    def __init__(
        self,
        platform_probe: PlatformProbe | None = None,
        session: requests.Session | None = None,
        ip_endpoints: Sequence[str] = IP_ENDPOINTS,
        ip_timeout: float = 3.0,
    ) -> None:
        """
        Initialize the HostInfoCollector.

        Args:
            platform_probe: OS-specific probe. Selected from the running
                platform when omitted.
            session: requests session used for the public IP lookup.
            ip_endpoints: Public IP echo services, tried in order.
            ip_timeout: Per-endpoint timeout in seconds.
        """
        self._probe = platform_probe if platform_probe is not None else select_probe()
        self._session = session
        self._ip_endpoints = tuple(ip_endpoints)
        self._ip_timeout = ip_timeout
        # Initialize CPU percent (first call returns 0.0)
        _isolated("CPU load", lambda: psutil.cpu_percent(interval=None), 0.0)

    @property
    def platform_probe(self) -> PlatformProbe:
        """The probe variant in use."""
        return self._probe

    def collect(self, stop: threading.Event | None = None) -> HostSnapshot:
        """
        Collect a fresh snapshot of the host.

        Args:
            stop: Set by the caller to abandon the collection. Checked before
                each probe that runs commands or touches the network.

        Raises:
            CollectionError: If the processor count cannot be read.
            CollectionCancelled: If stop was set before collection finished.
            OverflowError: If the summed storage size overflows.
        """
        cpu_cores = self._cpu_cores()

        _check_stop(stop)
        cpu_model = _isolated("CPU model", self._probe.cpu_model, UNKNOWN)
        _check_stop(stop)
        gpu = _isolated("GPU", self._probe.gpu_info, GpuInfo.UNKNOWN)
        _check_stop(stop)
        display = _isolated("Display", self._probe.display_info, DisplayInfo.UNKNOWN)
        _check_stop(stop)
        public_ip = _isolated("Public IP", self._public_ip, UNAVAILABLE)
        _check_stop(stop)
        memory_total, memory_free, memory_used = self._memory()
        storage_total, storage_free, storage_used = self._storage()

        return HostSnapshot(
            user_name=_isolated("User name", lambda: _or_unknown(getpass.getuser()), UNKNOWN),
            host_name=_isolated("Host name", lambda: _or_unknown(socket.gethostname()), UNKNOWN),
            os_name=_isolated("OS name", lambda: _or_unknown(platform.system()), UNKNOWN),
            os_version=_isolated("OS version", lambda: _or_unknown(platform.release()), UNKNOWN),
            os_arch=_isolated("OS arch", lambda: _or_unknown(platform.machine()), UNKNOWN),
            runtime_version=_isolated(
                "Runtime version", lambda: _or_unknown(platform.python_version()), UNKNOWN
            ),
            runtime_vendor=_isolated(
                "Runtime vendor", lambda: _or_unknown(platform.python_implementation()), UNKNOWN
            ),
            local_ip=_isolated("Local IP", local_ip_address, UNKNOWN),
            public_ip=public_ip,
            cpu_cores=cpu_cores,
            cpu_model=cpu_model,
            cpu_load=self._cpu_load(),
            gpu_model=gpu.model,
            gpu_memory=gpu.memory,
            memory_total=memory_total,
            memory_free=memory_free,
            memory_used=memory_used,
            storage_total=storage_total,
            storage_free=storage_free,
            storage_used=storage_used,
            display_count=display.count,
            display_width=display.width,
            display_height=display.height,
            refresh_rate=display.refresh_rate,
        )

    def _cpu_cores(self) -> int:
        """Logical processor count; its absence is fatal."""
        try:
            cores = psutil.cpu_count(logical=True)
        except (psutil.Error, OSError) as exc:
            raise CollectionError(f"processor count unavailable: {exc}") from exc
        if not cores or cores < 1:
            raise CollectionError("processor count unavailable")
        return cores

    def _public_ip(self) -> str:
        return fetch_public_ip(self._ip_endpoints, session=self._session, timeout=self._ip_timeout)

    def _cpu_load(self) -> float:
        try:
            return normalize_load(psutil.cpu_percent(interval=None))
        except (psutil.Error, OSError, TypeError) as exc:
            logger.warning("CPU load probe failed: %s", exc)
            return 0.0

    def _memory(self) -> tuple[int, int, int]:
        """Total, free and used physical memory in bytes."""
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as exc:
            logger.warning("Memory probe failed: %s", exc)
            return 0, 0, 0
        total = max(mem.total, 0)
        free = min(max(mem.available, 0), total)
        return total, free, total - free

    def _storage(self) -> tuple[int, int, int]:
        """Total, free and used bytes summed over every mounted filesystem root."""
        try:
            partitions = psutil.disk_partitions(all=False)
        except (psutil.Error, OSError) as exc:
            logger.warning("Storage probe failed: %s", exc)
            return 0, 0, 0

        total = free = 0
        seen: set[str] = set()
        for part in partitions:
            if part.mountpoint in seen:
                continue
            seen.add(part.mountpoint)
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (psutil.Error, OSError) as exc:
                # Unready drives and permission-restricted mounts
                logger.warning("Skipping %s: %s", part.mountpoint, exc)
                continue
            total = checked_add(total, usage.total)
            free = checked_add(free, usage.free)
        free = min(free, total)
        return total, free, total - free
