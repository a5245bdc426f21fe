"""Raw metric sources and concurrent snapshot collection."""

import logging
import math
import os
import subprocess
import sys
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Mapping, Protocol

import psutil

from pwrzv.errors import MetricParseError, MetricTimeout, MetricUnavailable
from pwrzv.models import Platform, RawSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0
DEFAULT_SAMPLE_INTERVAL = 0.5
# Assumed link speed when the interface does not report one.
DEFAULT_LINK_SPEED_MBPS = 1000

Reading = Mapping[str, float]


class MetricSource(Protocol):
    """
    One read operation per metric domain.

    Each operation returns the ``RawSnapshot`` fields it could read (a key
    left out means that field is unavailable) or raises ``MetricUnavailable``
    or one of its subclasses.
    """

    platform: Platform

    def read_cpu(self) -> Reading: ...

    def read_load(self) -> Reading: ...

    def read_memory(self) -> Reading: ...

    def read_swap(self) -> Reading: ...

    def read_disk_io(self) -> Reading: ...

    def read_network(self) -> Reading: ...

    def read_fds(self) -> Reading: ...

    def read_processes(self) -> Reading: ...


# Operation name -> snapshot fields it is responsible for.
OPERATIONS: dict[str, tuple[str, ...]] = {
    "read_cpu": ("cpu_usage_ratio", "cpu_iowait_ratio"),
    "read_load": ("cpu_load_avg",),
    "read_memory": ("memory_available_ratio", "memory_pressure_or_compressed_ratio"),
    "read_swap": ("swap_usage_ratio",),
    "read_disk_io": ("disk_io_busy_ratio",),
    "read_network": ("network_utilization_ratio", "network_drop_ratio"),
    "read_fds": ("fd_usage_ratio",),
    "read_processes": ("process_count_ratio",),
}


class UnsupportedSource:
    """Source for platforms without metric support; every read fails."""

    platform = Platform.UNSUPPORTED

    def _fail(self, domain: str) -> Reading:
        raise MetricUnavailable(domain, "not supported on this platform")

    def read_cpu(self) -> Reading:
        return self._fail("cpu")

    def read_load(self) -> Reading:
        return self._fail("load")

    def read_memory(self) -> Reading:
        return self._fail("memory")

    def read_swap(self) -> Reading:
        return self._fail("swap")

    def read_disk_io(self) -> Reading:
        return self._fail("disk_io")

    def read_network(self) -> Reading:
        return self._fail("network")

    def read_fds(self) -> Reading:
        return self._fail("fds")

    def read_processes(self) -> Reading:
        return self._fail("processes")


def detect_platform(name: str | None = None) -> Platform:
    """Map ``sys.platform`` (or ``name``) to a ``Platform``."""
    name = sys.platform if name is None else name
    if name.startswith("linux"):
        return Platform.LINUX
    if name == "darwin":
        return Platform.MACOS
    return Platform.UNSUPPORTED


def create_source(platform: Platform | None = None, **kwargs) -> MetricSource:
    """Pick the metric source for ``platform`` (the host's by default)."""
    platform = detect_platform() if platform is None else platform
    if platform is Platform.LINUX:
        from pwrzv.linux import LinuxSource

        return LinuxSource(**kwargs)
    if platform is Platform.MACOS:
        from pwrzv.macos import MacOSSource

        return MacOSSource(**kwargs)
    return UnsupportedSource()


def _validate(operation: str, reading: Reading) -> dict[str, float]:
    """Keep only known, finite, numeric fields of ``reading``."""
    if not isinstance(reading, Mapping):
        raise MetricParseError(operation, f"expected a mapping, got {type(reading).__name__}")
    allowed = OPERATIONS[operation]
    values: dict[str, float] = {}
    for key, raw in reading.items():
        if key not in allowed:
            logger.debug("%s returned unexpected field %s", operation, key)
            continue
        if raw is None:
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise MetricParseError(key, f"{raw!r} is not a number") from e
        if not math.isfinite(value) or value < 0:
            raise MetricParseError(key, f"{raw!r} is out of range")
        values[key] = value
    return values


def collect_snapshot(source: MetricSource, timeout: float = DEFAULT_TIMEOUT) -> RawSnapshot:
    """
    Run every read of ``source`` concurrently and join them into one snapshot.

    All reads share one deadline. A read that fails or misses the deadline
    leaves its fields unset and records the reason in ``failures``; the
    snapshot is only built once every read has finished or been abandoned.
    """
    fields: dict[str, float] = {}
    failures: dict[str, str] = {}

    executor = ThreadPoolExecutor(max_workers=len(OPERATIONS), thread_name_prefix="pwrzv-read")
    try:
        futures: dict[Future, str] = {
            executor.submit(getattr(source, op)): op for op in OPERATIONS
        }
        done, not_done = wait(futures, timeout=timeout)

        for future in not_done:
            op = futures[future]
            future.cancel()
            error = MetricTimeout(op, timeout)
            logger.debug("%s", error)
            for key in OPERATIONS[op]:
                failures[key] = error.reason

        for future in done:
            op = futures[future]
            try:
                values = _validate(op, future.result())
            except MetricUnavailable as e:
                logger.debug("%s failed: %s", op, e)
                for key in OPERATIONS[op]:
                    failures[key] = e.reason
                continue
            except (OSError, ValueError, psutil.Error, subprocess.SubprocessError) as e:
                logger.debug("%s failed: %s", op, e)
                for key in OPERATIONS[op]:
                    failures[key] = str(e) or type(e).__name__
                continue
            except Exception as e:
                logger.debug("%s raised %s", op, type(e).__name__, exc_info=True)
                for key in OPERATIONS[op]:
                    failures[key] = f"{type(e).__name__}: {e}"
                continue
            fields.update(values)
            for key in OPERATIONS[op]:
                if key not in values:
                    failures.setdefault(key, "not reported")
    finally:
        # Do not block on reads that overran the deadline.
        executor.shutdown(wait=False, cancel_futures=True)

    return RawSnapshot(platform=source.platform, failures=failures, **fields)


# Helpers shared by the Linux and macOS sources.


def run_command(args: list[str], timeout: float) -> str:
    """Run ``args`` and return stdout, mapping failures to metric errors."""
    try:
        proc = subprocess.run(args, check=True, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise MetricTimeout(args[0], timeout) from e
    except (OSError, subprocess.CalledProcessError) as e:
        raise MetricUnavailable(args[0], f"command failed: {e}") from e
    return proc.stdout


def read_text(path: str | os.PathLike) -> str:
    """Read a small text file such as a ``/proc`` entry."""
    try:
        with open(path, encoding="utf-8") as fh:
            return fh.read()
    except OSError as e:
        raise MetricUnavailable(str(path), f"cannot read: {e.strerror or e}") from e


def cpu_ratios(interval: float) -> dict[str, float]:
    """Non-idle and iowait fractions over ``interval`` seconds."""
    times = psutil.cpu_times_percent(interval=interval)
    values = {"cpu_usage_ratio": max(0.0, min(1.0, (100.0 - times.idle) / 100.0))}
    iowait = getattr(times, "iowait", None)
    if iowait is not None:
        values["cpu_iowait_ratio"] = max(0.0, min(1.0, iowait / 100.0))
    return values


def load_per_core() -> float:
    """One-minute load average divided by the logical CPU count."""
    try:
        load_1m = psutil.getloadavg()[0]
    except (AttributeError, OSError) as e:
        raise MetricUnavailable("load", str(e)) from e
    cores = psutil.cpu_count(logical=True) or os.cpu_count() or 0
    if cores <= 0:
        raise MetricUnavailable("load", "unknown CPU count")
    return load_1m / cores


def swap_ratio() -> float:
    swap = psutil.swap_memory()
    if swap.total <= 0:
        raise MetricUnavailable("swap", "no swap configured")
    return min(1.0, swap.used / swap.total)


def drop_ratio(counters: Mapping[str, object]) -> float | None:
    """Dropped / total packets over interfaces that carried traffic."""
    packets = 0
    dropped = 0
    for name, c in counters.items():
        if name.startswith("lo"):
            continue
        iface_packets = int(getattr(c, "packets_sent", 0)) + int(getattr(c, "packets_recv", 0))
        if iface_packets <= 0:
            continue
        packets += iface_packets
        dropped += int(getattr(c, "dropin", 0)) + int(getattr(c, "dropout", 0))
    if packets == 0:
        return None
    return min(1.0, dropped / packets)


def bandwidth_ratio(
    before: Mapping[str, object],
    after: Mapping[str, object],
    speeds_mbps: Mapping[str, int],
    elapsed: float,
) -> float | None:
    """Highest per-interface utilization of link capacity between two samples."""
    if elapsed <= 0:
        return None
    busiest: float | None = None
    for name, curr in after.items():
        if name.startswith("lo"):
            continue
        prev = before.get(name)
        if prev is None:
            continue
        moved = max(0, int(getattr(curr, "bytes_sent", 0)) - int(getattr(prev, "bytes_sent", 0)))
        moved += max(0, int(getattr(curr, "bytes_recv", 0)) - int(getattr(prev, "bytes_recv", 0)))
        speed = speeds_mbps.get(name) or DEFAULT_LINK_SPEED_MBPS
        capacity = speed * 1_000_000 / 8 * elapsed
        ratio = min(1.0, moved / capacity)
        busiest = ratio if busiest is None else max(busiest, ratio)
    return busiest


def network_ratios(interval: float) -> dict[str, float]:
    """Bandwidth utilization and packet drop ratio from psutil counters."""
    before = psutil.net_io_counters(pernic=True)
    t0 = time.monotonic()
    time.sleep(interval)
    after = psutil.net_io_counters(pernic=True)
    elapsed = time.monotonic() - t0

    speeds = {
        name: stats.speed
        for name, stats in psutil.net_if_stats().items()
        if stats.isup and stats.speed > 0
    }
    values: dict[str, float] = {}
    utilization = bandwidth_ratio(before, after, speeds, elapsed)
    if utilization is not None:
        values["network_utilization_ratio"] = utilization
    dropped = drop_ratio(after)
    if dropped is not None:
        values["network_drop_ratio"] = dropped
    if not values:
        raise MetricUnavailable("network", "no active interfaces")
    return values


def sample_disks(
    interval: float,
    busy_ms: Callable[[object], float],
    include: Callable[[str], bool],
) -> float:
    """Busiest disk's fraction of ``interval`` spent doing I/O."""
    before = psutil.disk_io_counters(perdisk=True)
    t0 = time.monotonic()
    time.sleep(interval)
    after = psutil.disk_io_counters(perdisk=True)
    elapsed_ms = (time.monotonic() - t0) * 1000.0
    if not before or not after or elapsed_ms <= 0:
        raise MetricUnavailable("disk_io", "no disk counters")

    busiest: float | None = None
    for name, curr in after.items():
        prev = before.get(name)
        if prev is None or not include(name):
            continue
        ratio = min(1.0, max(0.0, busy_ms(curr) - busy_ms(prev)) / elapsed_ms)
        busiest = ratio if busiest is None else max(busiest, ratio)
    if busiest is None:
        raise MetricUnavailable("disk_io", "no physical disks found")
    return busiest
