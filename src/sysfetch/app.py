"""sysfetch - Main Textual application."""

import logging
from queue import Empty, Queue

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.logging import TextualHandler
from textual.widgets import Footer, Static

from sysfetch.collector import HostInfoCollector
from sysfetch.models import UNSUPPORTED_REFRESH_RATE, HostSnapshot
from sysfetch.worker import CollectionFailure, CollectionResult, SnapshotWorker


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{size:d} {unit}"
        size = size / 1024
    return f"{size:.1f} PB"


class SnapshotPanel(Static):
    """Panel showing the most recent host snapshot."""

    DEFAULT_CSS = """
    SnapshotPanel {
        height: auto;
        padding: 1 2;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SnapshotPanel."""
        super().__init__("Collecting system information...", *args, **kwargs)
        self._snapshot: HostSnapshot | None = None

    @property
    def snapshot(self) -> HostSnapshot | None:
        """The snapshot currently on screen."""
        return self._snapshot

    def show_snapshot(self, snapshot: HostSnapshot) -> None:
        """Replace the panel contents with a new snapshot."""
        self._snapshot = snapshot
        self.update(self._format(snapshot))

    @staticmethod
    def _format(snapshot: HostSnapshot) -> str:
        if snapshot.refresh_rate == UNSUPPORTED_REFRESH_RATE:
            refresh = "Unknown"
        else:
            refresh = f"{snapshot.refresh_rate} Hz"
        rows = [
            ("User", f"{snapshot.user_name}@{snapshot.host_name}"),
            ("OS", f"{snapshot.os_name} {snapshot.os_version} ({snapshot.os_arch})"),
            ("Python", f"{snapshot.runtime_vendor} {snapshot.runtime_version}"),
            ("Local IP", snapshot.local_ip),
            ("Public IP", snapshot.public_ip),
            ("CPU", f"{snapshot.cpu_model} ({snapshot.cpu_cores} cores)"),
            ("CPU load", f"{snapshot.cpu_load:.1f}%"),
            ("GPU", snapshot.gpu_model),
            ("VRAM", snapshot.gpu_memory),
            (
                "Memory",
                f"{format_bytes(snapshot.memory_used)} / {format_bytes(snapshot.memory_total)}",
            ),
            (
                "Storage",
                f"{format_bytes(snapshot.storage_used)} / {format_bytes(snapshot.storage_total)}",
            ),
            ("Displays", str(snapshot.display_count)),
            ("Resolution", f"{snapshot.resolution} @ {refresh}"),
        ]
        return "\n".join(f"[bold yellow]{label:<11}[/bold yellow] {escape(value)}" for label, value in rows)


class SysfetchApp(App):
    """Main sysfetch application."""

    TITLE = "sysfetch"
    SUB_TITLE = "System Information"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        height: 1;
        padding: 0 2;
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(self, collector: HostInfoCollector | None = None, timeout: float = 30.0) -> None:
        """
        Initialize the SysfetchApp.

        Args:
            collector: Collector to take snapshots with.
            timeout: Overall time limit for one collection (in seconds).
        """
        super().__init__()
        self._result_queue: Queue[CollectionResult] = Queue()
        self._worker = SnapshotWorker(
            collector if collector is not None else HostInfoCollector(),
            self._result_queue,
            timeout=timeout,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield SnapshotPanel(id="snapshot")
        yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        """Request the first snapshot when the app is mounted."""
        self.action_refresh()
        # Set up a timer to poll the queue for results
        self.set_interval(0.2, self._check_for_results)

    def _set_status(self, text: str) -> None:
        self.query_one("#status", Static).update(text)

    def _check_for_results(self) -> None:
        """Check the queue for collection results and refresh the UI."""
        while True:
            try:
                result = self._result_queue.get_nowait()
            except Empty:
                break
            self._apply_result(result)

    def _apply_result(self, result: CollectionResult) -> None:
        if isinstance(result, CollectionFailure):
            # Keep the previous snapshot on screen
            self._set_status("Refresh failed")
            self.notify(f"Collection failed: {result.reason}", severity="error")
            return
        self.query_one("#snapshot", SnapshotPanel).show_snapshot(result)
        self._set_status("Press r to refresh")

    def action_refresh(self) -> None:
        """Handle refresh action - request a new snapshot."""
        if not self._worker.request():
            self.notify("Refresh already in progress", severity="warning")
            return
        self._set_status("Collecting...")

    def action_quit(self) -> None:
        """Handle quit action, dropping any in-flight collection."""
        self._worker.cancel()
        self.exit()


def main() -> None:
    """Entry point for sysfetch application."""
    logging.basicConfig(level=logging.WARNING, handlers=[TextualHandler()])
    app = SysfetchApp()
    app.run()


if __name__ == "__main__":
    main()
