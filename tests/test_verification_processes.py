"""Verification Test: Child process cleanup.

Every diagnostic command spawned during a collection must have exited, with
its output drained, before collect() returns, whether the probes succeeded,
failed, or timed out.
"""

import sys
import time

import psutil
import pytest

from sysfetch.collector import HostInfoCollector
from sysfetch.probes import LinuxProbe, ProbeError, run_command, select_probe


def live_children() -> list[psutil.Process]:
    """Children of this test process that are still running."""
    children = []
    for child in psutil.Process().children(recursive=True):
        try:
            if child.status() != psutil.STATUS_ZOMBIE:
                children.append(child)
        except psutil.NoSuchProcess:
            continue
    return children


class TestProcessCleanup:
    """Child process cleanup verification suite tests."""

    def test_no_children_after_collect(self):
        """
        Test a real collection leaves no diagnostic commands running.

        Uses the probe for the running platform, so which commands exist
        depends on the host; missing tools are fine.
        """
        before = {child.pid for child in live_children()}
        collector = HostInfoCollector(platform_probe=select_probe(), ip_endpoints=())

        snapshot = collector.collect()

        assert snapshot.cpu_cores >= 1
        leftover = [child for child in live_children() if child.pid not in before]
        assert leftover == []

    def test_timed_out_command_is_killed(self):
        """Test a command that outlives its timeout does not survive."""
        before = {child.pid for child in live_children()}
        start = time.monotonic()

        with pytest.raises(ProbeError):
            run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)

        assert time.monotonic() - start < 10.0
        leftover = [child for child in live_children() if child.pid not in before]
        assert leftover == []

    def test_repeated_collections_are_stable(self):
        """Test many collections in a row keep working and leave nothing behind."""
        before = {child.pid for child in live_children()}
        collector = HostInfoCollector(platform_probe=LinuxProbe(), ip_endpoints=())

        snapshots = [collector.collect() for _ in range(5)]

        assert len({id(snapshot) for snapshot in snapshots}) == 5
        leftover = [child for child in live_children() if child.pid not in before]
        assert leftover == []
