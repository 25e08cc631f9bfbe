"""Find processes at or above a resident memory threshold."""

import logging

import psutil

from memtrim.backends import ProcessBackend, detect_backend
from memtrim.models import MB, ProcessRecord, ScanSummary

logger = logging.getLogger(__name__)


class ProcessEnumerator:
    """
    Lists running processes by resident memory.

    The whole process table is read before the threshold is applied. After
    each call ``last_summary`` tells an unavailable listing apart from a
    listing with no matches; both return an empty list.
    """

    def __init__(self, backend: ProcessBackend | None = None) -> None:
        self._backend = backend or detect_backend()
        self.last_summary = ScanSummary()

    def list_processes_at_or_above(self, threshold_mb: int) -> list[ProcessRecord]:
        """
        Return every process whose resident size is >= ``threshold_mb`` MB.

        Order follows the OS enumeration order.

        Raises:
            ValueError: If ``threshold_mb`` is negative.
        """
        if threshold_mb < 0:
            raise ValueError(f"threshold must be non-negative, got {threshold_mb}")

        threshold_bytes = threshold_mb * MB

        try:
            records = list(self._backend.iter_processes())
        except (psutil.Error, OSError) as exc:
            logger.warning("Process listing unavailable: %s", exc)
            self.last_summary = ScanSummary(available=False)
            return []

        matches = [record for record in records if record.resident_bytes >= threshold_bytes]
        self.last_summary = ScanSummary(
            available=True,
            visible=len(records),
            matched=len(matches),
        )
        logger.debug(
            "%d of %d processes use >= %d MB",
            len(matches),
            len(records),
            threshold_mb,
        )
        return matches
