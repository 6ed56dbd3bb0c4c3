"""Escalating terminator — interrupt, wait, then force-kill survivors."""

from __future__ import annotations

import logging
import signal
import sys
import time
from collections.abc import Callable

import psutil

from ovpnctl.process.finder import ProcessFinder
from ovpnctl.session.models import ObservedProcess

logger = logging.getLogger(__name__)


class EscalatingTerminator:
    """Shuts down every process the finder reports, gracefully then forcefully.

    Failures to signal or kill are logged and never raised: teardown must
    always finish. Callers that need certainty have to re-query the finder.
    """

    def __init__(
        self,
        finder: ProcessFinder,
        poll_interval: float = 0.5,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._finder = finder
        self._poll_interval = poll_interval
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._clock = clock

    def terminate(self, graceful: bool = True, timeout: float = 5.0) -> None:
        processes = self._finder.list()
        if not processes:
            return

        if graceful:
            for proc in processes:
                _interrupt(proc)
            if self._wait_until_gone(timeout):
                logger.info("All OpenVPN processes exited after interrupt")
                return

        survivors = self._finder.list()
        if not survivors:
            return

        failed = [proc for proc in survivors if not _kill(proc)]
        if not failed:
            return

        # One more attempt at whatever is still alive, as a batch
        self._sleep(self._retry_delay)
        survivors = self._finder.list()
        if survivors:
            logger.warning(
                "Retrying force kill of %d OpenVPN process(es): %s",
                len(survivors),
                ", ".join(str(p.pid) for p in survivors),
            )
            for proc in survivors:
                _kill(proc)

    def _wait_until_gone(self, timeout: float) -> bool:
        deadline = self._clock() + timeout
        while self._clock() < deadline:
            self._sleep(self._poll_interval)
            if not self._finder.list():
                return True
        return False


def _interrupt(proc: ObservedProcess) -> None:
    """Best-effort Ctrl+C equivalent."""
    try:
        target = psutil.Process(proc.pid)
        if sys.platform == "win32":
            target.terminate()
        else:
            target.send_signal(signal.SIGINT)
        logger.debug("Sent interrupt to %s (PID %d)", proc.name, proc.pid)
    except psutil.NoSuchProcess:
        logger.debug("Process %d already exited", proc.pid)
    except (psutil.AccessDenied, OSError) as exc:
        logger.warning("Could not interrupt process %d: %s", proc.pid, exc)


def _kill(proc: ObservedProcess) -> bool:
    """Force kill; returns False only when the process may still be alive."""
    try:
        psutil.Process(proc.pid).kill()
        logger.info("Killed %s (PID %d)", proc.name, proc.pid)
        return True
    except psutil.NoSuchProcess:
        logger.debug("Process %d already exited", proc.pid)
        return True
    except (psutil.AccessDenied, OSError) as exc:
        logger.warning("Permission denied killing process %d: %s", proc.pid, exc)
        return False
