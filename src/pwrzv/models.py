"""Data models for pwrzv."""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from pwrzv.errors import InvalidConfiguration
from pwrzv.levels import ReserveLevel, score_to_level


class Platform(Enum):
    """Platforms with a distinct metric source and parameter table."""

    LINUX = "Linux"
    MACOS = "macOS"
    UNSUPPORTED = "Unsupported"

    @property
    def env_prefix(self) -> str:
        """Segment used in override variable names, e.g. ``LINUX``."""
        return self.name


class Metric(Enum):
    """Scored metrics, declared in canonical bottleneck order."""

    CPU_USAGE = ("CPU Usage", "cpu_usage_ratio")
    CPU_IOWAIT = ("CPU IO Wait", "cpu_iowait_ratio")
    CPU_LOAD = ("CPU Load", "cpu_load_avg")
    MEMORY_USAGE = ("Memory Usage", "memory_available_ratio")
    MEMORY_PRESSURE = ("Memory Pressure", "memory_pressure_or_compressed_ratio")
    SWAP = ("Swap Usage", "swap_usage_ratio")
    DISK_IO = ("Disk IO", "disk_io_busy_ratio")
    NETWORK = ("Network Bandwidth", "network_utilization_ratio")
    NETWORK_DROPPED = ("Network Dropped Packets", "network_drop_ratio")
    FD = ("File Descriptors", "fd_usage_ratio")
    PROCESS = ("Process Count", "process_count_ratio")

    def __init__(self, label: str, field_name: str) -> None:
        self.label = label
        self.field_name = field_name

    def env_stem(self, platform: Platform) -> str:
        """Metric part of the override variable name, e.g. ``CPU_USAGE``."""
        return _PLATFORM_STEMS.get((platform, self), self.name)

    @property
    def rank(self) -> int:
        """Position in the canonical order."""
        return _CANONICAL_RANK[self]


_CANONICAL_RANK = {metric: index for index, metric in enumerate(Metric)}

# macOS scores compressed memory in the pressure slot.
_PLATFORM_STEMS = {(Platform.MACOS, Metric.MEMORY_PRESSURE): "MEMORY_COMPRESSED"}


def _freeze(mapping: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(slots=True, frozen=True)
class RawSnapshot:
    """
    Immutable capture of one host's counters at one instant.

    Every metric field is optional; ``None`` means the value could not be
    read on this platform or during this collection. ``failures`` keeps the
    reason text for fields that failed, keyed by field name.
    """

    platform: Platform = Platform.UNSUPPORTED
    cpu_usage_ratio: float | None = None
    cpu_iowait_ratio: float | None = None
    cpu_load_avg: float | None = None  # load per core, unbounded
    memory_available_ratio: float | None = None
    memory_pressure_or_compressed_ratio: float | None = None
    swap_usage_ratio: float | None = None
    disk_io_busy_ratio: float | None = None
    network_utilization_ratio: float | None = None
    network_drop_ratio: float | None = None
    fd_usage_ratio: float | None = None
    process_count_ratio: float | None = None
    failures: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "failures", _freeze(self.failures))

    def value_of(self, metric: Metric) -> float | None:
        """Return the raw field backing ``metric``."""
        return getattr(self, metric.field_name)

    @property
    def available_metrics(self) -> list[Metric]:
        """Metrics with a value present, in canonical order."""
        return [m for m in Metric if self.value_of(m) is not None]


@dataclass(slots=True, frozen=True)
class MetricParams:
    """Sigmoid midpoint (x0) and steepness (k) for one metric."""

    midpoint: float
    steepness: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.midpoint) or self.midpoint <= 0:
            raise InvalidConfiguration(f"midpoint must be a positive number, got {self.midpoint!r}")
        if not math.isfinite(self.steepness) or self.steepness <= 0:
            raise InvalidConfiguration(f"steepness must be a positive number, got {self.steepness!r}")


@dataclass(slots=True, frozen=True)
class ComponentScore:
    """Reserve score of a single metric."""

    metric: Metric
    raw_value: float  # normalized pressure fed to the sigmoid
    score: float  # reserve in (0, 1), higher is better
    description: str | None = None

    @property
    def name(self) -> str:
        return self.metric.label

    @property
    def level(self) -> int:
        """Per-component 0-5 level, for display only."""
        return score_to_level(self.score)


@dataclass(slots=True, frozen=True)
class DetailedResult:
    """Outcome of one evaluation, handed to the output layer."""

    component_scores: tuple[ComponentScore, ...]
    overall_value: float
    overall_score: int
    bottleneck: tuple[str, ...]
    level_description: str
    platform: Platform = Platform.UNSUPPORTED
    warnings: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def level(self) -> ReserveLevel:
        """The ``ReserveLevel`` for ``overall_score``."""
        return ReserveLevel.from_score(self.overall_score)

    def to_dict(self) -> dict:
        """Plain mapping used by the JSON and YAML renderers."""
        return {
            "power_reserve_level": self.overall_score,
            "level_label": self.level.label,
            "level_description": self.level_description,
            "platform": self.platform.value,
            "overall_value": round(self.overall_value, 4),
            "bottleneck": list(self.bottleneck),
            "components": [
                {
                    "name": c.name,
                    "raw_value": round(c.raw_value, 4),
                    "score": round(c.score, 4),
                    "level": c.level,
                }
                for c in self.component_scores
            ],
            "skipped": list(self.skipped),
            "warnings": list(self.warnings),
        }
