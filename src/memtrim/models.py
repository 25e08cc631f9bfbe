"""Data models for memtrim."""

from dataclasses import dataclass

MB = 1024 * 1024


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of one process's resident memory."""

    pid: int
    name: str  # May be empty if the name could not be read
    resident_bytes: int

    @property
    def resident_mb(self) -> int:
        """Resident size in whole megabytes."""
        return self.resident_bytes // MB


@dataclass(slots=True, frozen=True)
class TrimResult:
    """Resident size of the current process before and after a trim request."""

    before_bytes: int
    after_bytes: int
    requested: bool  # True only if the OS accepted the release request
    method: str

    @property
    def before_kb(self) -> int:
        return self.before_bytes // 1024

    @property
    def after_kb(self) -> int:
        return self.after_bytes // 1024

    @property
    def released_bytes(self) -> int:
        return max(self.before_bytes - self.after_bytes, 0)


@dataclass(slots=True)
class ScanSummary:
    """Outcome of the last enumeration, beyond the matching records."""

    available: bool = True
    visible: int = 0
    matched: int = 0
