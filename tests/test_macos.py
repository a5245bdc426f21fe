"""Tests for the macOS metric source."""

from types import SimpleNamespace

import pytest

from pwrzv import macos
from pwrzv.errors import MetricParseError, MetricUnavailable
from pwrzv.macos import MacOSSource, compressed_ratio, parse_vm_stat, sysctl_int

VM_STAT_SAMPLE = """Mach Virtual Memory Statistics: (page size of 16384 bytes)
Pages free:                               10000.
Pages active:                             40000.
Pages inactive:                           30000.
Pages speculative:                         5000.
Pages throttled:                              0.
Pages wired down:                         10000.
Pages purgeable:                           1000.
"Translation faults":                  123456789.
Pages occupied by compressor:              5000.
"""


def _sysctl(values):
    def run(args, timeout):
        assert args[:2] == ["sysctl", "-n"]
        return f"{values[args[2]]}\n"

    return run


class TestVmStat:
    """Tests for vm_stat parsing."""

    def test_parse_vm_stat(self):
        """Test vm_stat lines parse to page counts."""
        pages = parse_vm_stat(VM_STAT_SAMPLE)
        assert pages["Pages free"] == 10000
        assert pages["Pages occupied by compressor"] == 5000
        assert pages['"Translation faults"'] == 123456789

    def test_missing_header(self):
        """Test vm_stat output without its page size header is a parse error."""
        with pytest.raises(MetricParseError):
            parse_vm_stat("Pages free: 10.\n")

    def test_compressed_ratio(self):
        """Test compressed pages are measured against all physical pages."""
        pages = parse_vm_stat(VM_STAT_SAMPLE)
        assert compressed_ratio(pages) == 5000 / 100000

    def test_compressed_ratio_without_compressor(self):
        """Test a missing compressor line is a parse error."""
        with pytest.raises(MetricParseError):
            compressed_ratio({"Pages free": 10})


class TestMacOSSource:
    """Tests for MacOSSource with stubbed system utilities."""

    def test_sysctl_int(self, monkeypatch):
        """Test sysctl_int parses a numeric sysctl value."""
        monkeypatch.setattr(macos, "run_command", _sysctl({"kern.maxproc": 4000}))
        assert sysctl_int("kern.maxproc") == 4000

    def test_sysctl_int_garbage(self, monkeypatch):
        """Test a non-numeric sysctl value is a parse error."""
        monkeypatch.setattr(macos, "run_command", _sysctl({"kern.maxproc": "lots"}))
        with pytest.raises(MetricParseError):
            sysctl_int("kern.maxproc")

    def test_read_fds(self, monkeypatch):
        """Test open files are measured against kern.maxfiles."""
        monkeypatch.setattr(macos, "run_command", _sysctl({"kern.num_files": 3000, "kern.maxfiles": 12000}))
        assert MacOSSource().read_fds() == {"fd_usage_ratio": 0.25}

    def test_read_fds_zero_limit(self, monkeypatch):
        """Test a zero kern.maxfiles makes the metric unavailable."""
        monkeypatch.setattr(macos, "run_command", _sysctl({"kern.num_files": 3000, "kern.maxfiles": 0}))
        with pytest.raises(MetricUnavailable):
            MacOSSource().read_fds()

    def test_read_processes(self, monkeypatch):
        """Test the process count is measured against kern.maxproc."""
        monkeypatch.setattr(macos, "run_command", _sysctl({"kern.maxproc": 1000}))
        monkeypatch.setattr(macos.psutil, "pids", lambda: list(range(100)))
        assert MacOSSource().read_processes() == {"process_count_ratio": 0.1}

    def test_read_memory(self, monkeypatch):
        """Test read_memory reports available and compressed memory."""
        monkeypatch.setattr(macos.psutil, "virtual_memory", lambda: SimpleNamespace(total=200, available=50))
        monkeypatch.setattr(macos, "run_command", lambda args, timeout: VM_STAT_SAMPLE)

        values = MacOSSource().read_memory()

        assert values["memory_available_ratio"] == 0.25
        assert values["memory_pressure_or_compressed_ratio"] == 0.05

    def test_read_memory_without_vm_stat(self, monkeypatch):
        """Test a failing vm_stat drops only the compressed ratio."""

        def fail(args, timeout):
            raise MetricUnavailable(args[0], "command failed")

        monkeypatch.setattr(macos.psutil, "virtual_memory", lambda: SimpleNamespace(total=200, available=50))
        monkeypatch.setattr(macos, "run_command", fail)

        assert MacOSSource().read_memory() == {"memory_available_ratio": 0.25}

    def test_read_disk_io(self, monkeypatch):
        """Test disk read and write time becomes a busy ratio."""
        samples = iter(
            [
                {"disk0": SimpleNamespace(read_time=0, write_time=0)},
                {"disk0": SimpleNamespace(read_time=4, write_time=1)},
            ]
        )
        monkeypatch.setattr(macos.psutil, "disk_io_counters", lambda perdisk: next(samples))
        ratio = MacOSSource(sample_interval=0.01).read_disk_io()["disk_io_busy_ratio"]
        assert 0.0 < ratio <= 1.0
