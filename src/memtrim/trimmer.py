"""Release the current process's memory back to the OS."""

import gc
import logging
from collections.abc import Callable

import psutil

from memtrim.backends import ProcessBackend, detect_backend
from memtrim.errors import TrimFailedError, TrimUnsupportedError
from memtrim.models import TrimResult

logger = logging.getLogger(__name__)


class MemoryTrimmer:
    """
    Issues an advisory trim request for the calling process.

    The OS may ignore the request or honor it only in part. Failures are
    logged and never raised; the before/after samples are always returned.
    """

    def __init__(
        self,
        backend: ProcessBackend | None = None,
        collect_garbage: bool = True,
    ) -> None:
        """
        Initialize the MemoryTrimmer.

        Args:
            backend: OS capability layer. Detected from the platform if omitted.
            collect_garbage: Run a full gc pass before the OS request.
        """
        self._backend = backend or detect_backend()
        self._collect_garbage = collect_garbage

    def trim_current_process(
        self, on_before: Callable[[int], None] | None = None
    ) -> TrimResult:
        """
        Trim the calling process and report its resident size around it.

        Args:
            on_before: Called with the first sample before the OS request is
                made, so callers can report it ahead of any failure message.
        """
        before = self._sample()
        if before is None:
            before = 0
        if on_before is not None:
            on_before(before)

        if self._collect_garbage:
            collected = gc.collect()
            logger.debug("gc.collect() freed %d objects", collected)

        requested = False
        method = "none"
        try:
            method = self._backend.release_memory()
            requested = True
        except TrimUnsupportedError as exc:
            logger.warning("Memory trim unavailable: %s", exc)
        except TrimFailedError as exc:
            method = exc.method
            logger.warning("Memory trim request failed: %s", exc)
        except OSError as exc:
            logger.warning("Memory trim request failed: %s", exc)

        after = self._sample()
        if after is None:
            after = before

        return TrimResult(
            before_bytes=before,
            after_bytes=after,
            requested=requested,
            method=method,
        )

    def _sample(self) -> int | None:
        try:
            return self._backend.current_rss()
        except (psutil.Error, OSError) as exc:
            logger.warning("Could not read resident memory: %s", exc)
            return None
