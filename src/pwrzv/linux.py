"""Linux metric source backed by psutil and ``/proc``."""

import logging
import re
from pathlib import Path

import psutil

from pwrzv.errors import MetricParseError, MetricUnavailable
from pwrzv.models import Platform
from pwrzv.source import (
    DEFAULT_SAMPLE_INTERVAL,
    Reading,
    cpu_ratios,
    load_per_core,
    network_ratios,
    read_text,
    sample_disks,
    swap_ratio,
)

logger = logging.getLogger(__name__)

# Process ceiling used when the kernel limits cannot be read.
TYPICAL_MAX_PROCESSES = 4096
# Kernel task limits under proc_root; the smallest readable one wins.
_TASK_LIMITS = (("sys", "kernel", "pid_max"), ("sys", "kernel", "threads-max"))

_PARTITION = re.compile(r"^(sd[a-z]+\d+|hd[a-z]+\d+|vd[a-z]+\d+|xvd[a-z]+\d+|nvme\d+n\d+p\d+|mmcblk\d+p\d+)$")
_VIRTUAL = ("loop", "ram", "zram", "dm-", "md", "sr", "fd")


def is_whole_disk(name: str) -> bool:
    """True for physical block devices, false for partitions and virtual devices."""
    if name.startswith(_VIRTUAL):
        return False
    return _PARTITION.match(name) is None


def parse_psi_memory(text: str) -> float:
    """
    Parse ``/proc/pressure/memory`` and return ``some avg10`` as a ratio.

    Example line:
      some avg10=1.53 avg60=0.87 avg300=0.29 total=1234567
    """
    for line in text.splitlines():
        if not line.startswith("some "):
            continue
        for part in line.split()[1:]:
            key, _, value = part.partition("=")
            if key == "avg10":
                try:
                    return min(1.0, float(value) / 100.0)
                except ValueError as e:
                    raise MetricParseError("memory_pressure", f"bad avg10 {value!r}") from e
    raise MetricParseError("memory_pressure", "no 'some avg10' entry")


def parse_file_nr(text: str) -> float:
    """Parse ``/proc/sys/fs/file-nr`` (allocated, unused, max) into a usage ratio."""
    parts = text.split()
    if len(parts) < 3:
        raise MetricParseError("fds", f"expected 3 fields, got {len(parts)}")
    try:
        allocated, unused, maximum = (int(p) for p in parts[:3])
    except ValueError as e:
        raise MetricParseError("fds", str(e)) from e
    if maximum <= 0:
        raise MetricUnavailable("fds", "file-max is zero")
    return min(1.0, max(0, allocated - unused) / maximum)


def parse_limit(text: str, name: str) -> int:
    """Parse a single positive integer such as ``/proc/sys/kernel/pid_max``."""
    try:
        value = int(text.strip())
    except ValueError as e:
        raise MetricParseError(name, f"{text.strip()!r} is not an integer") from e
    if value <= 0:
        raise MetricParseError(name, f"limit must be positive, got {value}")
    return value


class LinuxSource:
    """
    Metric source for Linux hosts.

    CPU, memory, swap, disk and network figures come from psutil; memory
    PSI and file descriptor counts are read from ``proc_root``.
    """

    platform = Platform.LINUX

    def __init__(
        self,
        proc_root: str | Path = "/proc",
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
    ) -> None:
        self._proc = Path(proc_root)
        self._interval = sample_interval

    def read_cpu(self) -> Reading:
        return cpu_ratios(self._interval)

    def read_load(self) -> Reading:
        return {"cpu_load_avg": load_per_core()}

    def read_memory(self) -> Reading:
        vm = psutil.virtual_memory()
        values: dict[str, float] = {}
        if vm.total > 0:
            values["memory_available_ratio"] = min(1.0, vm.available / vm.total)
        try:
            pressure = parse_psi_memory(read_text(self._proc / "pressure" / "memory"))
        except MetricUnavailable:
            # Kernels without PSI still report plain memory usage.
            pass
        else:
            values["memory_pressure_or_compressed_ratio"] = pressure
        if not values:
            raise MetricUnavailable("memory", "total memory reported as zero")
        return values

    def read_swap(self) -> Reading:
        return {"swap_usage_ratio": swap_ratio()}

    def read_disk_io(self) -> Reading:
        busy = sample_disks(
            self._interval,
            busy_ms=lambda c: float(getattr(c, "busy_time", 0)),
            include=is_whole_disk,
        )
        return {"disk_io_busy_ratio": busy}

    def read_network(self) -> Reading:
        return network_ratios(self._interval)

    def read_fds(self) -> Reading:
        text = read_text(self._proc / "sys" / "fs" / "file-nr")
        return {"fd_usage_ratio": parse_file_nr(text)}

    def process_limit(self) -> int:
        """Smallest of the kernel pid and thread limits, or the typical ceiling."""
        limits = []
        for parts in _TASK_LIMITS:
            path = self._proc.joinpath(*parts)
            try:
                limits.append(parse_limit(read_text(path), parts[-1]))
            except MetricUnavailable as e:
                logger.debug("%s", e)
        return min(limits, default=TYPICAL_MAX_PROCESSES)

    def read_processes(self) -> Reading:
        count = len(psutil.pids())
        return {"process_count_ratio": count / self.process_limit()}
