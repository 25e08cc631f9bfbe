"""Send termination requests to processes."""

import logging
import os

import psutil

from memtrim.backends import ProcessBackend, detect_backend

logger = logging.getLogger(__name__)


class ProcessTerminator:
    """
    Requests process termination with the platform's standard strength.

    POSIX processes receive SIGTERM and may clean up before exiting. Windows
    processes are ended with TerminateProcess, which gives them no chance to
    clean up. A True result means the OS accepted the request; the process
    may still be tearing down when ``terminate`` returns.
    """

    def __init__(self, backend: ProcessBackend | None = None) -> None:
        self._backend = backend or detect_backend()

    def terminate(self, pid: int) -> bool:
        """Return True if the OS accepted the termination request for ``pid``."""
        if pid == os.getpid():
            logger.info("Refusing to terminate the calling process (PID %d)", pid)
            return False

        try:
            self._backend.terminate(pid)
        except psutil.NoSuchProcess:
            logger.debug("PID %d no longer exists", pid)
            return False
        except psutil.AccessDenied:
            logger.info("Access denied terminating PID %d", pid)
            return False
        except (psutil.Error, OSError, ValueError) as exc:
            logger.info("Could not terminate PID %d: %s", pid, exc)
            return False
        return True
