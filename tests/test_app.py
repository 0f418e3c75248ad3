"""Tests for sysfetch application."""

import threading

import pytest

from conftest import make_snapshot
from sysfetch.app import SnapshotPanel, SysfetchApp, format_bytes
from sysfetch.collector import CollectionError
from sysfetch.worker import CollectionFailure


class StubCollector:
    """Collector returning canned snapshots or raising a canned error."""

    def __init__(self, snapshot=None, error=None, gate=None) -> None:
        self.snapshot = snapshot if snapshot is not None else make_snapshot()
        self.error = error
        self.gate = gate
        self.stop = None

    def collect(self, stop=None):
        self.stop = stop
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        if self.error is not None:
            raise self.error
        return self.snapshot


def test_format_bytes_bytes():
    """Test format_bytes with byte values."""
    assert format_bytes(500) == "500 B"


def test_format_bytes_kilobytes():
    """Test format_bytes with kilobyte values."""
    assert format_bytes(2048) == "2.0 KB"


def test_format_bytes_megabytes():
    """Test format_bytes with megabyte values."""
    assert "MB" in format_bytes(5242880)


def test_format_bytes_gigabytes():
    """Test format_bytes with gigabyte values."""
    assert format_bytes(16 * 1024**3) == "16.0 GB"


def test_panel_format_escapes_markup():
    """Test bracketed values are not read as markup tags."""
    text = SnapshotPanel._format(make_snapshot(gpu_model="Radeon [rev c1]"))
    assert "Radeon \\[rev c1]" in text
    assert "1920x1080 @ 60 Hz" in text


def test_panel_format_unknown_refresh_rate():
    """Test an unsupported refresh rate renders as Unknown."""
    text = SnapshotPanel._format(make_snapshot(refresh_rate=-1))
    assert "1920x1080 @ Unknown" in text


@pytest.mark.asyncio
async def test_app_creation():
    """Test SysfetchApp can be instantiated."""
    app = SysfetchApp(collector=StubCollector())
    assert app.title == "sysfetch"
    assert app.sub_title == "System Information"
    assert app._worker is not None


@pytest.mark.asyncio
async def test_app_shows_snapshot():
    """Test the first snapshot is collected and shown after mount."""
    snapshot = make_snapshot()
    app = SysfetchApp(collector=StubCollector(snapshot=snapshot))
    async with app.run_test() as pilot:
        panel = pilot.app.query_one("#snapshot", SnapshotPanel)
        for _ in range(50):
            if panel.snapshot is not None:
                break
            await pilot.pause(0.1)
        assert panel.snapshot is snapshot


@pytest.mark.asyncio
async def test_failure_keeps_previous_snapshot():
    """Test a failed refresh leaves the previous snapshot on screen."""
    snapshot = make_snapshot()
    collector = StubCollector(snapshot=snapshot)
    app = SysfetchApp(collector=collector)
    async with app.run_test() as pilot:
        panel = pilot.app.query_one("#snapshot", SnapshotPanel)
        for _ in range(50):
            if panel.snapshot is not None:
                break
            await pilot.pause(0.1)

        pilot.app._apply_result(CollectionFailure(reason="timed out after 30 seconds"))
        assert panel.snapshot is snapshot


@pytest.mark.asyncio
async def test_refresh_rejected_while_busy():
    """Test pressing r during a collection does not start another."""
    gate = threading.Event()
    app = SysfetchApp(collector=StubCollector(gate=gate))
    try:
        async with app.run_test() as pilot:
            assert pilot.app._worker.is_busy
            await pilot.press("r")
            assert pilot.app._worker.is_busy
            gate.set()
    finally:
        gate.set()


@pytest.mark.asyncio
async def test_collection_error_surfaces():
    """Test a fatal collection error does not crash the app."""
    app = SysfetchApp(collector=StubCollector(error=CollectionError("no cpu count")))
    async with app.run_test() as pilot:
        for _ in range(50):
            if not pilot.app._worker.is_busy:
                break
            await pilot.pause(0.1)
        await pilot.pause(0.3)
        assert pilot.app.query_one("#snapshot", SnapshotPanel).snapshot is None


@pytest.mark.asyncio
async def test_app_quit_binding():
    """Test that 'q' binding triggers quit and stops the running collection."""
    gate = threading.Event()
    collector = StubCollector(gate=gate)
    app = SysfetchApp(collector=collector)
    try:
        async with app.run_test() as pilot:
            for _ in range(50):
                if collector.stop is not None:
                    break
                await pilot.pause(0.05)
            await pilot.press("q")
            assert collector.stop.is_set()
    finally:
        gate.set()
