"""Tests for snapshot normalization."""

import math

import pytest

from pwrzv.models import Metric, Platform, RawSnapshot
from pwrzv.normalizer import normalize, to_pressure


class TestToPressure:
    """Tests for to_pressure."""

    def test_ratio_passes_through(self):
        """Test a ratio in range is used as the pressure."""
        assert to_pressure(Metric.CPU_USAGE, 0.42) == 0.42

    def test_ratios_are_clamped(self):
        """Test ratios outside 0-1 are clamped."""
        assert to_pressure(Metric.DISK_IO, 1.7) == 1.0
        assert to_pressure(Metric.SWAP, -0.2) == 0.0

    def test_available_memory_is_inverted(self):
        """Test memory headroom becomes usage pressure."""
        assert to_pressure(Metric.MEMORY_USAGE, 0.3) == pytest.approx(0.7)
        assert to_pressure(Metric.MEMORY_USAGE, 1.0) == 0.0

    def test_load_is_unbounded(self):
        """Test per-core load above 1.0 is kept."""
        assert to_pressure(Metric.CPU_LOAD, 2.5) == 2.5
        assert to_pressure(Metric.CPU_LOAD, -1.0) == 0.0


class TestNormalize:
    """Tests for normalize."""

    def test_canonical_order_and_skips(self):
        """Test pressures come out in canonical order with missing metrics skipped."""
        snapshot = RawSnapshot(
            platform=Platform.LINUX,
            process_count_ratio=0.1,
            cpu_usage_ratio=0.5,
            memory_available_ratio=0.25,
        )
        result = normalize(snapshot)

        assert [m for m, _ in result.pressures] == [
            Metric.CPU_USAGE,
            Metric.MEMORY_USAGE,
            Metric.PROCESS,
        ]
        assert dict(result.pressures)[Metric.MEMORY_USAGE] == pytest.approx(0.75)
        assert Metric.SWAP in result.skipped
        assert len(result.pressures) + len(result.skipped) == len(Metric)

    def test_non_finite_values_are_skipped(self):
        """Test NaN and infinity never reach the sigmoid."""
        snapshot = RawSnapshot(cpu_usage_ratio=math.nan, swap_usage_ratio=math.inf, fd_usage_ratio=0.2)
        result = normalize(snapshot)

        assert result.pressures == ((Metric.FD, 0.2),)
        assert Metric.CPU_USAGE in result.skipped
        assert Metric.SWAP in result.skipped

    def test_empty_snapshot(self):
        """Test an empty snapshot skips every metric."""
        result = normalize(RawSnapshot())
        assert result.pressures == ()
        assert result.skipped == tuple(Metric)
