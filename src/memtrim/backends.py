"""OS capability layer for memtrim.

Every platform-specific call lives here. The rest of the package talks to a
``ProcessBackend`` and never inspects ``sys.platform`` itself.
"""

import ctypes
import ctypes.util
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import Any

import psutil

from memtrim.errors import TrimFailedError, TrimUnsupportedError
from memtrim.models import ProcessRecord

logger = logging.getLogger(__name__)


class ProcessBackend(ABC):
    """Capability interface: trim, enumerate and terminate."""

    name = "abstract"

    @abstractmethod
    def current_rss(self) -> int:
        """Return the resident size of the calling process in bytes."""

    @abstractmethod
    def release_memory(self) -> str:
        """
        Ask the OS to release unused pages of the calling process.

        Returns:
            The name of the mechanism that was used.

        Raises:
            TrimUnsupportedError: No mechanism exists on this platform.
            TrimFailedError: The OS rejected the request.
        """

    @abstractmethod
    def iter_processes(self) -> Iterator[ProcessRecord]:
        """Yield a record for every visible process, unfiltered."""

    @abstractmethod
    def terminate(self, pid: int) -> None:
        """Request termination of ``pid`` using the platform's default strength."""


class PsutilBackend(ProcessBackend):
    """
    Backend built on psutil, used as-is on platforms without a trim call.

    Enumeration policy: processes whose resident size cannot be read are
    omitted; processes whose name cannot be read are kept with an empty name.
    psutil opens and closes the underlying OS handles inside each call.
    """

    name = "generic"

    def current_rss(self) -> int:
        return psutil.Process().memory_info().rss

    def release_memory(self) -> str:
        raise TrimUnsupportedError(f"no memory release mechanism on {sys.platform}")

    def iter_processes(self) -> Iterator[ProcessRecord]:
        skipped = 0
        for proc in psutil.process_iter():
            try:
                with proc.oneshot():
                    rss = proc.memory_info().rss
                    name = self._process_name(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Exited mid-scan or not ours to inspect
                skipped += 1
                continue
            yield ProcessRecord(pid=proc.pid, name=name, resident_bytes=rss)

        if skipped:
            logger.debug("Skipped %d unreadable processes", skipped)

    @staticmethod
    def _process_name(proc: psutil.Process) -> str:
        try:
            return proc.name() or ""
        except (psutil.AccessDenied, psutil.ZombieProcess):
            return ""

    def terminate(self, pid: int) -> None:
        # SIGTERM on POSIX, TerminateProcess on Windows
        psutil.Process(pid).terminate()


class WindowsBackend(PsutilBackend):
    """Trims the working set with SetProcessWorkingSetSize."""

    name = "windows"
    method = "SetProcessWorkingSetSize"

    def release_memory(self) -> str:
        win_dll = getattr(ctypes, "WinDLL", None)
        if win_dll is None:
            raise TrimUnsupportedError("kernel32 is not available")

        from ctypes import wintypes

        kernel32 = win_dll("kernel32", use_last_error=True)
        kernel32.GetCurrentProcess.restype = wintypes.HANDLE
        kernel32.SetProcessWorkingSetSize.argtypes = [
            wintypes.HANDLE,
            ctypes.c_size_t,
            ctypes.c_size_t,
        ]
        kernel32.SetProcessWorkingSetSize.restype = wintypes.BOOL

        # Pseudo handle, must not be closed
        handle = kernel32.GetCurrentProcess()
        unbounded = ctypes.c_size_t(-1).value
        if not kernel32.SetProcessWorkingSetSize(handle, unbounded, unbounded):
            raise TrimFailedError(self.method, f"error={ctypes.get_last_error()}")
        return self.method


class _AllocatorTrimBackend(PsutilBackend):
    """Trims by calling a release function exported by the C allocator."""

    library = "c"
    symbol = ""

    def __init__(self, loader: Callable[[], Any] | None = None) -> None:
        """
        Initialize the backend.

        Args:
            loader: Returns the loaded C library. Defaults to ctypes.CDLL on
                the platform's library.
        """
        self._loader = loader or self._load_library
        self._lib: Any = None

    def _load_library(self) -> Any:
        return ctypes.CDLL(ctypes.util.find_library(self.library))

    def release_memory(self) -> str:
        if self._lib is None:
            try:
                self._lib = self._loader()
            except OSError as exc:
                raise TrimUnsupportedError(f"cannot load the C library: {exc}") from exc

        func = getattr(self._lib, self.symbol, None)
        if func is None:
            raise TrimUnsupportedError(f"{self.symbol} is not available in this C library")

        result = self._invoke(func)
        logger.debug("%s returned %d", self.symbol, result)
        return self.symbol

    @abstractmethod
    def _invoke(self, func: Any) -> int:
        """Call the release function and return its result."""


class LinuxBackend(_AllocatorTrimBackend):
    """Returns free heap pages to the kernel with glibc's malloc_trim."""

    name = "linux"
    symbol = "malloc_trim"

    def _invoke(self, func: Any) -> int:
        func.argtypes = [ctypes.c_size_t]
        func.restype = ctypes.c_int
        # 1 if memory was released, 0 if there was nothing to release
        return func(0)


class DarwinBackend(_AllocatorTrimBackend):
    """Releases free pages from every malloc zone."""

    name = "darwin"
    library = "System"
    symbol = "malloc_zone_pressure_relief"

    def _invoke(self, func: Any) -> int:
        func.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        func.restype = ctypes.c_size_t
        # NULL zone means all zones, goal 0 means as much as possible
        return func(None, 0)


def detect_backend(platform: str | None = None) -> ProcessBackend:
    """Select the backend for ``platform`` (defaults to the running one)."""
    platform = platform or sys.platform
    if platform == "win32":
        return WindowsBackend()
    if platform.startswith("linux"):
        return LinuxBackend()
    if platform == "darwin":
        return DarwinBackend()
    return PsutilBackend()
