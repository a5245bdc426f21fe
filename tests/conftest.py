"""Shared fixtures for pwrzv tests."""

import logging
import os
import time

import pytest

from pwrzv.models import Platform
from pwrzv.source import OPERATIONS


class FakeSource:
    """
    In-memory metric source.

    ``readings`` maps an operation name to the mapping it returns, or to an
    exception it raises. Operations left out return an empty mapping.
    """

    def __init__(self, readings=None, platform=Platform.LINUX, delays=None):
        self.platform = platform
        self._readings = dict(readings or {})
        self._delays = dict(delays or {})
        self.calls: list[str] = []

    def _read(self, op):
        self.calls.append(op)
        delay = self._delays.get(op)
        if delay:
            time.sleep(delay)
        value = self._readings.get(op, {})
        if isinstance(value, BaseException):
            raise value
        return value

    def read_cpu(self):
        return self._read("read_cpu")

    def read_load(self):
        return self._read("read_load")

    def read_memory(self):
        return self._read("read_memory")

    def read_swap(self):
        return self._read("read_swap")

    def read_disk_io(self):
        return self._read("read_disk_io")

    def read_network(self):
        return self._read("read_network")

    def read_fds(self):
        return self._read("read_fds")

    def read_processes(self):
        return self._read("read_processes")


def source_from_fields(platform=Platform.LINUX, **fields) -> FakeSource:
    """Build a FakeSource that reports exactly ``fields``."""
    readings = {
        op: {key: fields[key] for key in keys if key in fields} for op, keys in OPERATIONS.items()
    }
    return FakeSource(readings, platform=platform)


@pytest.fixture
def make_source():
    """Factory for FakeSource objects built from snapshot fields."""
    return source_from_fields


@pytest.fixture
def fake_source_cls():
    return FakeSource


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Drop PWRZV_* variables so host settings never leak into tests."""
    for key in list(os.environ):
        if key.startswith("PWRZV_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_pwrzv_logger():
    """Undo setup_logging() so caplog keeps seeing pwrzv records."""
    yield
    logger = logging.getLogger("pwrzv")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
