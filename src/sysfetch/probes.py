"""Platform-specific hardware probes for sysfetch.

Each platform variant answers the same three questions (CPU model, first
GPU, displays) by running read-only diagnostic commands and parsing their
text output. Every answer is built from an ordered fallback chain of
strategies; a strategy that cannot produce a value raises ProbeError and
the next one is tried.
"""

import logging
import platform
import re
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TypeVar

from sysfetch.models import UNKNOWN, UNSUPPORTED_REFRESH_RATE, DisplayInfo, GpuInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMMAND_TIMEOUT = 10.0

Runner = Callable[[Sequence[str]], str]


class ProbeError(Exception):
    """A probe strategy could not produce its value."""


def run_command(args: Sequence[str], timeout: float = COMMAND_TIMEOUT) -> str:
    """
    Run a diagnostic command and return its standard output.

    Output streams are fully drained and the process has exited (or been
    killed on timeout) before this returns.

    Raises:
        ProbeError: If the command is missing, fails, or times out.
    """
    command = " ".join(args)
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=True,
        )
    except FileNotFoundError:
        raise ProbeError(f"{command}: command not found") from None
    except subprocess.TimeoutExpired:
        raise ProbeError(f"{command}: timed out after {timeout}s") from None
    except subprocess.CalledProcessError as exc:
        raise ProbeError(f"{command}: exited with status {exc.returncode}") from None
    except OSError as exc:
        raise ProbeError(f"{command}: {exc}") from exc
    return result.stdout


def fallback_chain(label: str, strategies: Sequence[Callable[[], T]], default: T) -> T:
    """Return the first strategy result, or default once all have failed."""
    for strategy in strategies:
        try:
            return strategy()
        except ProbeError as exc:
            logger.warning("%s probe failed: %s", label, exc)
    return default


def format_memory(size: int) -> str:
    """Format a video memory byte count."""
    if size >= 1024**3:
        return f"{size / 1024**3:.1f} GB"
    return f"{size // 1024**2} MB"


def _lines(output: str) -> list[str]:
    """Non-empty, stripped lines of command output."""
    return [line.strip() for line in output.splitlines() if line.strip()]


def _value_after_colon(lines: Sequence[str], label: str) -> str:
    """Text after the first colon of the first line starting with label."""
    for line in lines:
        if line.lower().startswith(label.lower()) and ":" in line:
            value = line.split(":", 1)[1].strip()
            if value:
                return value
    raise ProbeError(f"no '{label}' field")


class PlatformProbe(ABC):
    """Hardware probes for one operating system family."""

    name = "unknown"

    def __init__(self, runner: Runner = run_command) -> None:
        self._run = runner

    @abstractmethod
    def cpu_model(self) -> str:
        """CPU model name, or UNKNOWN."""

    @abstractmethod
    def gpu_info(self) -> GpuInfo:
        """Model and video memory of the first GPU."""

    @abstractmethod
    def display_info(self) -> DisplayInfo:
        """Display count and primary display mode."""


class WindowsProbe(PlatformProbe):
    """Probes backed by wmic, with systeminfo and PowerShell fallbacks."""

    name = "windows"

    GPU_POWERSHELL = (
        "Get-CimInstance Win32_VideoController | "
        "ForEach-Object { 'Name'; $_.Name; 'AdapterRAM'; $_.AdapterRAM }"
    )
    DISPLAY_POWERSHELL = (
        "Get-CimInstance Win32_VideoController | ForEach-Object { "
        "\"$($_.CurrentHorizontalResolution) $($_.CurrentRefreshRate) "
        "$($_.CurrentVerticalResolution)\" }"
    )

    def cpu_model(self) -> str:
        return fallback_chain(
            "CPU model",
            [self._cpu_from_wmic, self._cpu_from_systeminfo],
            UNKNOWN,
        )

    def _cpu_from_wmic(self) -> str:
        lines = _lines(self._run(["wmic", "cpu", "get", "name"]))
        # First line is the "Name" column header
        if len(lines) < 2:
            raise ProbeError("wmic cpu get name: no rows")
        return lines[1]

    def _cpu_from_systeminfo(self) -> str:
        lines = _lines(self._run(["systeminfo"]))
        for index, line in enumerate(lines):
            if "Processor(s):" not in line:
                continue
            following = lines[index + 1] if index + 1 < len(lines) else ""
            if "]:" in following:
                description = following.split("]:", 1)[1]
            else:
                description = line.split("Processor(s):", 1)[1]
            model = description.split("@", 1)[0].strip()
            if model:
                return model
        raise ProbeError("systeminfo: no 'Processor(s):' entry")

    def gpu_info(self) -> GpuInfo:
        return fallback_chain(
            "GPU",
            [self._gpu_from_wmic, self._gpu_from_powershell],
            GpuInfo.UNKNOWN,
        )

    def _gpu_from_wmic(self) -> GpuInfo:
        lines = _lines(
            self._run(["wmic", "path", "win32_VideoController", "get", "name,adapterram"])
        )
        # Columns come back alphabetically: AdapterRAM, Name
        if len(lines) < 2:
            raise ProbeError("wmic win32_VideoController: no rows")
        parts = lines[1].split(None, 1)
        if len(parts) < 2:
            raise ProbeError(f"wmic win32_VideoController: unexpected row {lines[1]!r}")
        try:
            adapter_ram = int(parts[0])
        except ValueError:
            raise ProbeError(f"wmic win32_VideoController: bad AdapterRAM {parts[0]!r}") from None
        return GpuInfo(model=parts[1].strip(), memory=format_memory(adapter_ram))

    def _gpu_from_powershell(self) -> GpuInfo:
        lines = _lines(
            self._run(["powershell", "-NoProfile", "-Command", self.GPU_POWERSHELL])
        )
        model = None
        memory = UNKNOWN
        for label, value in zip(lines, lines[1:]):
            if label == "Name" and model is None:
                model = value
            elif label == "AdapterRAM" and model is not None:
                if value.isdecimal():
                    memory = format_memory(int(value))
                break
        if model is None:
            raise ProbeError("Win32_VideoController: no 'Name' entry")
        return GpuInfo(model=model, memory=memory)

    def display_info(self) -> DisplayInfo:
        return fallback_chain(
            "Display",
            [self._displays_from_wmic, self._displays_from_powershell],
            DisplayInfo.UNKNOWN,
        )

    def _displays_from_wmic(self) -> DisplayInfo:
        lines = _lines(
            self._run(
                [
                    "wmic",
                    "path",
                    "win32_VideoController",
                    "get",
                    "CurrentHorizontalResolution,CurrentRefreshRate,CurrentVerticalResolution",
                ]
            )
        )
        # First line is the column header
        return self._parse_display_modes("wmic win32_VideoController", lines[1:])

    def _displays_from_powershell(self) -> DisplayInfo:
        lines = _lines(
            self._run(["powershell", "-NoProfile", "-Command", self.DISPLAY_POWERSHELL])
        )
        return self._parse_display_modes("Win32_VideoController", lines)

    @staticmethod
    def _parse_display_modes(source: str, rows: Sequence[str]) -> DisplayInfo:
        """Rows of "width refresh height"; controllers with blank values are inactive."""
        modes = []
        for row in rows:
            fields = row.split()
            if len(fields) == 3 and all(field.isdecimal() for field in fields):
                modes.append(tuple(int(field) for field in fields))
        if not modes:
            raise ProbeError(f"{source}: no active display modes")
        width, refresh_rate, height = modes[0]
        # 0 and 1 both mean "hardware default" rather than a real rate
        if refresh_rate <= 1:
            refresh_rate = UNSUPPORTED_REFRESH_RATE
        return DisplayInfo(count=len(modes), width=width, height=height, refresh_rate=refresh_rate)


class LinuxProbe(PlatformProbe):
    """Probes backed by lscpu, lspci, nvidia-smi/glxinfo and xrandr."""

    name = "linux"

    VRAM_REQUIREMENT = f"{UNKNOWN} (requires nvidia-smi or glxinfo)"

    def __init__(self, runner: Runner = run_command, cpuinfo_path: Path = Path("/proc/cpuinfo")) -> None:
        super().__init__(runner)
        self._cpuinfo_path = cpuinfo_path

    def cpu_model(self) -> str:
        return fallback_chain(
            "CPU model",
            [self._cpu_from_lscpu, self._cpu_from_cpuinfo],
            UNKNOWN,
        )

    def _cpu_from_lscpu(self) -> str:
        return _value_after_colon(_lines(self._run(["lscpu"])), "Model name")

    def _cpu_from_cpuinfo(self) -> str:
        try:
            text = self._cpuinfo_path.read_text(errors="replace")
        except OSError as exc:
            raise ProbeError(f"{self._cpuinfo_path}: {exc}") from exc
        return _value_after_colon(_lines(text), "model name")

    def gpu_info(self) -> GpuInfo:
        model = fallback_chain("GPU model", [self._gpu_from_lspci], UNKNOWN)
        memory = fallback_chain(
            "GPU memory",
            [self._vram_from_nvidia_smi, self._vram_from_glxinfo],
            self.VRAM_REQUIREMENT,
        )
        return GpuInfo(model=model, memory=memory)

    def _gpu_from_lspci(self) -> str:
        for line in _lines(self._run(["lspci"])):
            if ("VGA" in line or "3D" in line) and ": " in line:
                # "00:02.0 VGA compatible controller: <model>"
                return line.split(": ", 1)[1].strip()
        raise ProbeError("lspci: no VGA or 3D controller")

    def _vram_from_nvidia_smi(self) -> str:
        lines = _lines(
            self._run(["nvidia-smi", "--query-gpu=memory.total", "--format=csv,noheader"])
        )
        if not lines:
            raise ProbeError("nvidia-smi: empty output")
        return lines[0]

    def _vram_from_glxinfo(self) -> str:
        return _value_after_colon(_lines(self._run(["glxinfo", "-B"])), "Video memory")

    def display_info(self) -> DisplayInfo:
        return fallback_chain("Display", [self._displays_from_xrandr], DisplayInfo.UNKNOWN)

    def _displays_from_xrandr(self) -> DisplayInfo:
        output = self._run(["xrandr", "--current"])
        raw_lines = output.splitlines()
        connected = [
            index
            for index, line in enumerate(raw_lines)
            if re.match(r"^\S+ connected", line)
        ]
        if not connected:
            raise ProbeError("xrandr: no connected outputs")
        primary = next(
            (index for index in connected if " connected primary" in raw_lines[index]),
            connected[0],
        )
        width = height = 0
        refresh_rate = UNSUPPORTED_REFRESH_RATE
        for line in raw_lines[primary + 1 :]:
            if not line.startswith((" ", "\t")):
                break
            if "*" not in line:
                continue
            mode = re.match(r"\s+(\d+)x(\d+)", line)
            rate = re.search(r"(\d+(?:\.\d+)?)\*", line)
            if mode:
                width, height = int(mode.group(1)), int(mode.group(2))
            if rate:
                refresh_rate = round(float(rate.group(1)))
            break
        if not width:
            geometry = re.search(r"(\d+)x(\d+)\+", raw_lines[primary])
            if geometry:
                width, height = int(geometry.group(1)), int(geometry.group(2))
        return DisplayInfo(
            count=len(connected), width=width, height=height, refresh_rate=refresh_rate
        )


class MacOSProbe(PlatformProbe):
    """Probes backed by sysctl and system_profiler."""

    name = "macos"

    def cpu_model(self) -> str:
        return fallback_chain("CPU model", [self._cpu_from_sysctl], UNKNOWN)

    def _cpu_from_sysctl(self) -> str:
        lines = _lines(self._run(["sysctl", "-n", "machdep.cpu.brand_string"]))
        if not lines:
            raise ProbeError("sysctl machdep.cpu.brand_string: empty output")
        return lines[0]

    def _displays_data(self) -> list[str]:
        return _lines(self._run(["system_profiler", "SPDisplaysDataType"]))

    def gpu_info(self) -> GpuInfo:
        return fallback_chain("GPU", [self._gpu_from_system_profiler], GpuInfo.UNKNOWN)

    def _gpu_from_system_profiler(self) -> GpuInfo:
        lines = self._displays_data()
        model = _value_after_colon(lines, "Chipset Model")
        try:
            memory = _value_after_colon(lines, "VRAM")
        except ProbeError:
            # Unified-memory Macs report no VRAM line
            memory = UNKNOWN
        return GpuInfo(model=model, memory=memory)

    def display_info(self) -> DisplayInfo:
        return fallback_chain(
            "Display", [self._displays_from_system_profiler], DisplayInfo.UNKNOWN
        )

    def _displays_from_system_profiler(self) -> DisplayInfo:
        lines = self._displays_data()
        resolutions = [line for line in lines if line.startswith("Resolution:")]
        if not resolutions:
            raise ProbeError("system_profiler: no 'Resolution:' entries")
        mode = re.search(r"(\d+)\s*x\s*(\d+)", resolutions[0])
        if mode is None:
            raise ProbeError(f"system_profiler: bad resolution {resolutions[0]!r}")
        refresh_rate = UNSUPPORTED_REFRESH_RATE
        for line in lines:
            rate = re.search(r"@\s*(\d+(?:\.\d+)?)\s*Hz", line)
            if rate:
                refresh_rate = round(float(rate.group(1)))
                break
        return DisplayInfo(
            count=len(resolutions),
            width=int(mode.group(1)),
            height=int(mode.group(2)),
            refresh_rate=refresh_rate,
        )


class UnknownProbe(PlatformProbe):
    """Fallback for platforms with no known diagnostic tools."""

    def cpu_model(self) -> str:
        return UNKNOWN

    def gpu_info(self) -> GpuInfo:
        return GpuInfo.UNKNOWN

    def display_info(self) -> DisplayInfo:
        return DisplayInfo.UNKNOWN


_PROBES: dict[str, type[PlatformProbe]] = {
    "Windows": WindowsProbe,
    "Linux": LinuxProbe,
    "Darwin": MacOSProbe,
}


def select_probe(system: str | None = None, runner: Runner = run_command) -> PlatformProbe:
    """
    Pick the probe variant for this host.

    Args:
        system: Platform name as reported by platform.system(). Detected
            when omitted.
        runner: Command runner handed to the probe.
    """
    if system is None:
        system = platform.system()
    probe_class = _PROBES.get(system, UnknownProbe)
    logger.debug("Using %s probe for platform %r", probe_class.name, system)
    return probe_class(runner)
