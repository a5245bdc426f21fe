"""Sigmoid parameter tables and environment overrides."""

import logging
import math
import os
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from pwrzv.errors import InvalidConfiguration
from pwrzv.models import Metric, MetricParams, Platform

logger = logging.getLogger(__name__)

ENV_PREFIX = "PWRZV"
FALLBACK_PARAMS = MetricParams(midpoint=0.5, steepness=8.0)


def _table(entries: dict[Metric, tuple[float, float]]) -> Mapping[Metric, MetricParams]:
    return MappingProxyType({m: MetricParams(x0, k) for m, (x0, k) in entries.items()})


LINUX_DEFAULTS = _table(
    {
        Metric.CPU_USAGE: (0.65, 8.0),
        Metric.CPU_IOWAIT: (0.20, 20.0),
        Metric.CPU_LOAD: (1.2, 5.0),
        Metric.MEMORY_USAGE: (0.85, 18.0),
        Metric.MEMORY_PRESSURE: (0.30, 12.0),
        Metric.SWAP: (0.50, 10.0),
        Metric.DISK_IO: (0.70, 10.0),
        Metric.NETWORK: (0.80, 10.0),
        Metric.NETWORK_DROPPED: (0.02, 100.0),
        Metric.FD: (0.90, 25.0),
        Metric.PROCESS: (0.80, 12.0),
    }
)

MACOS_DEFAULTS = _table(
    {
        Metric.CPU_USAGE: (0.60, 8.0),
        Metric.CPU_IOWAIT: (0.20, 20.0),
        Metric.CPU_LOAD: (1.2, 5.0),
        Metric.MEMORY_USAGE: (0.85, 20.0),
        Metric.MEMORY_PRESSURE: (0.60, 15.0),  # compressed memory ratio
        Metric.SWAP: (0.50, 10.0),
        Metric.DISK_IO: (0.70, 10.0),
        Metric.NETWORK: (0.80, 10.0),
        Metric.NETWORK_DROPPED: (0.02, 100.0),
        Metric.FD: (0.90, 30.0),
        Metric.PROCESS: (0.80, 12.0),
    }
)

DEFAULT_TABLES: Mapping[Platform, Mapping[Metric, MetricParams]] = MappingProxyType(
    {
        Platform.LINUX: LINUX_DEFAULTS,
        Platform.MACOS: MACOS_DEFAULTS,
        # No source produces values here; Linux tuning keeps the table complete.
        Platform.UNSUPPORTED: LINUX_DEFAULTS,
    }
)


class OverridePolicy(Enum):
    """What to do with an override that cannot be used."""

    WARN = "warn"  # log, record a warning and keep the default
    STRICT = "strict"  # raise InvalidConfiguration


@dataclass(slots=True, frozen=True)
class ConfigWarning:
    """A rejected override value."""

    variable: str
    value: str
    reason: str

    def __str__(self) -> str:
        return f"{self.variable}={self.value!r} ignored: {self.reason}"


@dataclass(slots=True, frozen=True)
class ParamsTable:
    """Resolved parameters for every metric on one platform."""

    platform: Platform
    params: Mapping[Metric, MetricParams]
    warnings: tuple[ConfigWarning, ...] = ()

    def __getitem__(self, metric: Metric) -> MetricParams:
        return self.params[metric]

    def __contains__(self, metric: object) -> bool:
        return metric in self.params


def env_name(platform: Platform, metric: Metric, field: str) -> str:
    """Override variable name, e.g. ``PWRZV_LINUX_CPU_USAGE_MIDPOINT``."""
    return f"{ENV_PREFIX}_{platform.env_prefix}_{metric.env_stem(platform)}_{field.upper()}"


def env_float(
    name: str,
    environ: Mapping[str, str] | None = None,
) -> tuple[float | None, ConfigWarning | None]:
    """
    Read a strictly positive float from the environment.

    Returns ``(value, None)`` when set and valid, ``(None, None)`` when unset
    or blank, and ``(None, warning)`` when the value is unusable.
    """
    env = os.environ if environ is None else environ
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None, None
    try:
        value = float(raw.strip())
    except ValueError:
        return None, ConfigWarning(name, raw, "not a number")
    if not math.isfinite(value):
        return None, ConfigWarning(name, raw, "not a finite number")
    if value <= 0:
        return None, ConfigWarning(name, raw, "must be greater than zero")
    return value, None


def default_params(platform: Platform, metric: Metric) -> MetricParams:
    """Compiled-in parameters, or the hard fallback if the table has a gap."""
    table = DEFAULT_TABLES.get(platform, {})
    params = table.get(metric)
    if params is None:
        logger.error(
            "No default sigmoid parameters for %s on %s; using fallback %s",
            metric.name,
            platform.value,
            FALLBACK_PARAMS,
        )
        return FALLBACK_PARAMS
    return params


def resolve_metric(
    platform: Platform,
    metric: Metric,
    environ: Mapping[str, str] | None = None,
) -> tuple[MetricParams, list[ConfigWarning]]:
    """Resolve one metric's parameters: override, then default, then fallback."""
    base = default_params(platform, metric)
    warnings: list[ConfigWarning] = []

    midpoint, warning = env_float(env_name(platform, metric, "midpoint"), environ)
    if warning is not None:
        warnings.append(warning)
    steepness, warning = env_float(env_name(platform, metric, "steepness"), environ)
    if warning is not None:
        warnings.append(warning)

    if midpoint is None and steepness is None:
        return base, warnings
    return (
        MetricParams(
            midpoint=base.midpoint if midpoint is None else midpoint,
            steepness=base.steepness if steepness is None else steepness,
        ),
        warnings,
    )


def resolve_params(
    platform: Platform,
    environ: Mapping[str, str] | None = None,
    policy: OverridePolicy = OverridePolicy.WARN,
) -> ParamsTable:
    """
    Build the parameter table for ``platform``.

    The environment is read on every call. Rejected overrides are logged
    and recorded under ``OverridePolicy.WARN``; under ``STRICT`` the first
    batch of problems is raised as ``InvalidConfiguration``.
    """
    resolved: dict[Metric, MetricParams] = {}
    warnings: list[ConfigWarning] = []
    for metric in Metric:
        params, metric_warnings = resolve_metric(platform, metric, environ)
        resolved[metric] = params
        warnings.extend(metric_warnings)

    if warnings and policy is OverridePolicy.STRICT:
        raise InvalidConfiguration("; ".join(str(w) for w in warnings))
    for warning in warnings:
        logger.warning("Invalid sigmoid override %s, using default", warning)

    return ParamsTable(
        platform=platform,
        params=MappingProxyType(resolved),
        warnings=tuple(warnings),
    )


class ParamsCache:
    """
    Process-wide cache of a resolved ``ParamsTable``.

    Tables are immutable; ``refresh`` builds a new one and swaps the
    reference under a lock, so concurrent readers see either the old or the
    new table, never a half-built one.
    """

    def __init__(
        self,
        platform: Platform,
        policy: OverridePolicy = OverridePolicy.WARN,
    ) -> None:
        self._platform = platform
        self._policy = policy
        self._lock = threading.Lock()
        self._table: ParamsTable | None = None

    @property
    def platform(self) -> Platform:
        return self._platform

    def get(self) -> ParamsTable:
        """Return the cached table, resolving it on first use."""
        table = self._table
        if table is not None:
            return table
        with self._lock:
            if self._table is None:
                self._table = resolve_params(self._platform, policy=self._policy)
            return self._table

    def refresh(self) -> ParamsTable:
        """Re-read the environment and replace the cached table."""
        table = resolve_params(self._platform, policy=self._policy)
        with self._lock:
            self._table = table
        return table

    def invalidate(self) -> None:
        """Drop the cached table; the next ``get`` re-resolves."""
        with self._lock:
            self._table = None
