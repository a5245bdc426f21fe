"""Conversion of raw snapshot fields into sigmoid input pressures."""

import logging
import math
from dataclasses import dataclass

from pwrzv.models import Metric, RawSnapshot

logger = logging.getLogger(__name__)

# Metrics whose pressure is not a ratio and must not be capped at 1.0.
UNBOUNDED = frozenset({Metric.CPU_LOAD})
# Metrics whose raw field measures headroom rather than usage.
INVERTED = frozenset({Metric.MEMORY_USAGE})


@dataclass(slots=True, frozen=True)
class Normalized:
    """Pressures ready for scoring, plus the metrics left out."""

    pressures: tuple[tuple[Metric, float], ...]
    skipped: tuple[Metric, ...]


def to_pressure(metric: Metric, value: float) -> float:
    """Pressure for one metric; higher means more of the resource is used up."""
    if metric in INVERTED:
        value = 1.0 - value
    if metric in UNBOUNDED:
        return max(0.0, value)
    return max(0.0, min(1.0, value))


def normalize(snapshot: RawSnapshot) -> Normalized:
    """
    Turn a snapshot into ``(metric, pressure)`` pairs in canonical order.

    Unavailable fields and non-finite values are skipped instead of being
    replaced with a made-up value.
    """
    pressures: list[tuple[Metric, float]] = []
    skipped: list[Metric] = []

    for metric in Metric:
        value = snapshot.value_of(metric)
        if value is None:
            reason = snapshot.failures.get(metric.field_name, "not collected")
            logger.debug("Skipping %s: %s", metric.label, reason)
            skipped.append(metric)
            continue
        if not math.isfinite(value):
            logger.debug("Skipping %s: non-finite value %r", metric.label, value)
            skipped.append(metric)
            continue
        pressures.append((metric, to_pressure(metric, value)))

    return Normalized(pressures=tuple(pressures), skipped=tuple(skipped))
