"""macOS metric source backed by psutil and system utilities."""

import re

import psutil

from pwrzv.errors import MetricParseError, MetricUnavailable
from pwrzv.models import Platform
from pwrzv.source import (
    DEFAULT_SAMPLE_INTERVAL,
    Reading,
    cpu_ratios,
    load_per_core,
    network_ratios,
    run_command,
    sample_disks,
    swap_ratio,
)

COMMAND_TIMEOUT = 2.0

_PAGE_SIZE = re.compile(r"page size of (\d+) bytes")
_TOTAL_KEYS = (
    "Pages free",
    "Pages active",
    "Pages inactive",
    "Pages speculative",
    "Pages wired down",
    "Pages occupied by compressor",
)


def parse_vm_stat(text: str) -> dict[str, int]:
    """
    Parse ``vm_stat`` output into a name -> page count mapping.

    Example:
      Mach Virtual Memory Statistics: (page size of 16384 bytes)
      Pages free:                               12345.
    """
    lines = text.splitlines()
    if not lines or not _PAGE_SIZE.search(lines[0]):
        raise MetricParseError("vm_stat", "missing page size header")

    values: dict[str, int] = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        value = value.strip().rstrip(".").replace(",", "")
        if value.isdigit():
            values[key.strip()] = int(value)
    return values


def compressed_ratio(pages: dict[str, int]) -> float:
    """Share of physical pages held by the memory compressor."""
    compressed = pages.get("Pages occupied by compressor")
    if compressed is None:
        raise MetricParseError("vm_stat", "no compressor page count")
    total = sum(pages.get(key, 0) for key in _TOTAL_KEYS)
    if total <= 0:
        raise MetricParseError("vm_stat", "no page counts")
    return min(1.0, compressed / total)


def sysctl_int(name: str, timeout: float = COMMAND_TIMEOUT) -> int:
    out = run_command(["sysctl", "-n", name], timeout).strip()
    try:
        return int(out)
    except ValueError as e:
        raise MetricParseError(name, f"{out!r} is not an integer") from e


def _ratio(used: int, limit: int, name: str) -> float:
    if limit <= 0:
        raise MetricUnavailable(name, "limit reported as zero")
    return min(1.0, used / limit)


class MacOSSource:
    """Metric source for macOS hosts."""

    platform = Platform.MACOS

    def __init__(self, sample_interval: float = DEFAULT_SAMPLE_INTERVAL) -> None:
        self._interval = sample_interval

    def read_cpu(self) -> Reading:
        # psutil reports no iowait on macOS, so only usage is returned.
        return cpu_ratios(self._interval)

    def read_load(self) -> Reading:
        return {"cpu_load_avg": load_per_core()}

    def read_memory(self) -> Reading:
        vm = psutil.virtual_memory()
        values: dict[str, float] = {}
        if vm.total > 0:
            values["memory_available_ratio"] = min(1.0, vm.available / vm.total)
        try:
            pages = parse_vm_stat(run_command(["vm_stat"], COMMAND_TIMEOUT))
            values["memory_pressure_or_compressed_ratio"] = compressed_ratio(pages)
        except MetricUnavailable:
            pass
        if not values:
            raise MetricUnavailable("memory", "total memory reported as zero")
        return values

    def read_swap(self) -> Reading:
        return {"swap_usage_ratio": swap_ratio()}

    def read_disk_io(self) -> Reading:
        busy = sample_disks(
            self._interval,
            busy_ms=lambda c: float(getattr(c, "read_time", 0)) + float(getattr(c, "write_time", 0)),
            include=lambda name: name.startswith("disk"),
        )
        return {"disk_io_busy_ratio": busy}

    def read_network(self) -> Reading:
        return network_ratios(self._interval)

    def read_fds(self) -> Reading:
        used = sysctl_int("kern.num_files")
        return {"fd_usage_ratio": _ratio(used, sysctl_int("kern.maxfiles"), "fds")}

    def read_processes(self) -> Reading:
        count = len(psutil.pids())
        return {"process_count_ratio": _ratio(count, sysctl_int("kern.maxproc"), "processes")}
