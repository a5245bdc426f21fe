"""Tests for bottleneck aggregation."""

import pytest

from pwrzv.aggregator import TIE_EPSILON, aggregate
from pwrzv.errors import NoMetricsAvailable
from pwrzv.models import ComponentScore, Metric


def _score(metric: Metric, score: float) -> ComponentScore:
    return ComponentScore(metric=metric, raw_value=0.0, score=score)


class TestAggregate:
    """Tests for aggregate."""

    def test_minimum_is_bottleneck(self):
        """Test the weakest component sets the overall value."""
        result = aggregate(
            [
                _score(Metric.CPU_USAGE, 0.9),
                _score(Metric.MEMORY_USAGE, 0.4),
                _score(Metric.SWAP, 0.95),
            ]
        )
        assert result.value == 0.4
        assert result.bottleneck == (Metric.MEMORY_USAGE,)
        assert result.bottleneck_names == ("Memory Usage",)

    def test_ties_use_canonical_order(self):
        """Test tied metrics are reported in canonical order, whatever the input order."""
        components = [
            _score(Metric.SWAP, 0.3),
            _score(Metric.FD, 0.8),
            _score(Metric.CPU_USAGE, 0.3),
        ]
        forward = aggregate(components)
        backward = aggregate(reversed(components))

        assert forward == backward
        assert forward.bottleneck == (Metric.CPU_USAGE, Metric.SWAP)

    def test_near_tie_within_epsilon(self):
        """Test scores closer than TIE_EPSILON share the bottleneck."""
        result = aggregate(
            [
                _score(Metric.DISK_IO, 0.5 + TIE_EPSILON / 2),
                _score(Metric.NETWORK, 0.5),
            ]
        )
        assert result.bottleneck == (Metric.DISK_IO, Metric.NETWORK)

    def test_single_component(self):
        """Test a single component is both the minimum and the bottleneck."""
        result = aggregate([_score(Metric.PROCESS, 0.7)])
        assert result.value == 0.7
        assert result.bottleneck == (Metric.PROCESS,)

    def test_empty_raises(self):
        """Test aggregating nothing raises NoMetricsAvailable."""
        with pytest.raises(NoMetricsAvailable):
            aggregate([])
