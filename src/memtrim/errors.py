"""Exceptions raised by the OS capability layer."""


class MemtrimError(Exception):
    """Base class for memtrim errors."""


class TrimUnsupportedError(MemtrimError):
    """No memory release mechanism exists on this platform."""


class TrimFailedError(MemtrimError):
    """The OS rejected the memory release request."""

    def __init__(self, method: str, detail: str) -> None:
        super().__init__(f"{method} failed: {detail}")
        self.method = method
        self.detail = detail
