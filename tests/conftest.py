"""Shared fixtures for sysfetch tests."""

from collections.abc import Sequence

import pytest

from sysfetch.models import HostSnapshot
from sysfetch.probes import ProbeError


def make_snapshot(**overrides) -> HostSnapshot:
    """Build a HostSnapshot with plausible values."""
    fields = dict(
        user_name="alice",
        host_name="workstation",
        os_name="Linux",
        os_version="6.8.0",
        os_arch="x86_64",
        runtime_version="3.12.1",
        runtime_vendor="CPython",
        local_ip="192.168.1.20",
        public_ip="203.0.113.5",
        cpu_cores=8,
        cpu_model="Intel(R) Core(TM) i7-8700 CPU @ 3.20GHz",
        cpu_load=12.5,
        gpu_model="NVIDIA Corporation GP107 [GeForce GTX 1050 Ti]",
        gpu_memory="4096 MiB",
        memory_total=16 * 1024**3,
        memory_free=6 * 1024**3,
        memory_used=10 * 1024**3,
        storage_total=500 * 1024**3,
        storage_free=200 * 1024**3,
        storage_used=300 * 1024**3,
        display_count=1,
        display_width=1920,
        display_height=1080,
        refresh_rate=60,
    )
    fields.update(overrides)
    return HostSnapshot(**fields)


class FakeRunner:
    """Command runner that replays recorded output.

    Commands with no recording behave like a missing binary.
    """

    def __init__(self, outputs: dict[tuple[str, ...], str | Exception] | None = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[tuple[str, ...]] = []

    def __call__(self, args: Sequence[str]) -> str:
        key = tuple(args)
        self.calls.append(key)
        output = self.outputs.get(key)
        if output is None:
            raise ProbeError(f"{' '.join(args)}: command not found")
        if isinstance(output, Exception):
            raise output
        return output


@pytest.fixture
def snapshot() -> HostSnapshot:
    """A representative snapshot."""
    return make_snapshot()
