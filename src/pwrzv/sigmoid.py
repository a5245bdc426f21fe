"""Sigmoid transform used to turn pressure values into reserve scores."""

import math

from pwrzv.models import MetricParams

# Results are kept strictly inside (0, 1).
_EDGE = 1e-12


def _logistic(z: float) -> float:
    # Stable 1 / (1 + e^-z); never calls exp() with a large positive argument.
    if z >= 0:
        value = 1.0 / (1.0 + math.exp(-z))
    else:
        ez = math.exp(z)
        value = ez / (1.0 + ez)
    return min(1.0 - _EDGE, max(_EDGE, value))


def sigmoid(x: float, midpoint: float, steepness: float) -> float:
    """
    Pressure curve ``1 / (1 + e^(-k(x - x0)))``.

    Args:
        x: Normalized pressure (unbounded for load-style metrics).
        midpoint: Pressure at which the curve crosses 0.5.
        steepness: Curve sharpness; larger values approach a step.

    Returns:
        A value in the open interval (0, 1), exactly 0.5 at ``x == midpoint``.
    """
    return _logistic(steepness * (x - midpoint))


def reserve_score(x: float, params: MetricParams) -> float:
    """Reserve left for a metric at pressure ``x``; the complement of ``sigmoid``."""
    return _logistic(-params.steepness * (x - params.midpoint))
