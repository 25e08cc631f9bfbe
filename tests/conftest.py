"""Shared fixtures for memtrim tests."""

import logging
from collections.abc import Iterator

import psutil
import pytest

from memtrim.backends import ProcessBackend
from memtrim.errors import TrimUnsupportedError
from memtrim.models import MB, ProcessRecord


class FakeBackend(ProcessBackend):
    """Backend serving a synthetic process table."""

    name = "fake"

    def __init__(
        self,
        records: list[ProcessRecord] | None = None,
        rss_samples: list[int] | None = None,
        release_error: Exception | None = None,
        terminate_errors: dict[int, Exception] | None = None,
    ) -> None:
        self.records = records or []
        self.rss_samples = list(rss_samples or [100 * MB, 80 * MB])
        self.release_error = release_error
        self.terminate_errors = terminate_errors or {}
        self.iter_calls = 0
        self.release_calls = 0
        self.terminated: list[int] = []

    def current_rss(self) -> int:
        if len(self.rss_samples) > 1:
            return self.rss_samples.pop(0)
        return self.rss_samples[0]

    def release_memory(self) -> str:
        self.release_calls += 1
        if self.release_error is not None:
            raise self.release_error
        return "fake_trim"

    def iter_processes(self) -> Iterator[ProcessRecord]:
        self.iter_calls += 1
        yield from self.records

    def terminate(self, pid: int) -> None:
        self.terminated.append(pid)
        error = self.terminate_errors.get(pid)
        if error is not None:
            raise error


@pytest.fixture
def three_processes() -> list[ProcessRecord]:
    """Two processes at or above 50 MB and one below."""
    return [
        ProcessRecord(pid=101, name="big", resident_bytes=200 * MB),
        ProcessRecord(pid=102, name="small", resident_bytes=10 * MB),
        ProcessRecord(pid=103, name="edge", resident_bytes=50 * MB),
    ]


@pytest.fixture
def fake_backend(three_processes) -> FakeBackend:
    return FakeBackend(records=three_processes)


@pytest.fixture
def unsupported_backend() -> FakeBackend:
    return FakeBackend(release_error=TrimUnsupportedError("no trim here"))


@pytest.fixture
def unused_pid() -> int:
    """A pid that no running process has."""
    pid = 2**22 - 1
    while psutil.pid_exists(pid):
        pid -= 1
    return pid


@pytest.fixture(autouse=True)
def _reset_memtrim_logging():
    """Drop stderr handlers installed by main() so later tests see a clean logger."""
    yield
    logger = logging.getLogger("memtrim")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
