"""Connection-status state machine fed by classified log lines."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Collection

from ovpnctl.events import Broadcast
from ovpnctl.session.models import Status, Transition

logger = logging.getLogger(__name__)


class StatusMachine:
    """Holds the current status and broadcasts every change.

    Transitions are applied in the order received and never rolled back. The
    only legality checks are the guards carried by the pattern table rules.
    """

    def __init__(self, initial: Status = Status.STOPPED, history_limit: int = 64) -> None:
        self._status = initial
        self._channel: Broadcast[Status] = Broadcast(history_limit=history_limit)
        self._lock = threading.RLock()

    @property
    def current(self) -> Status:
        with self._lock:
            return self._status

    def apply(self, transition: Transition) -> Status | None:
        """Apply a classified line; returns the new status, or None if guarded off."""
        with self._lock:
            target = transition.rule.next_status(self._status)
            if target is None:
                logger.debug(
                    "Ignoring %r in status %s", transition.line, self._status.value
                )
                return None
            return self.set(target)

    def set(self, status: Status) -> Status:
        """Move to ``status`` and notify subscribers."""
        with self._lock:
            logger.debug("Status %s -> %s", self._status.value, status.value)
            self._status = status
            self._channel.publish(status)
            return status

    def set_unless(self, status: Status, skip: Collection[Status]) -> Status | None:
        """Move to ``status`` unless the current status is in ``skip``."""
        with self._lock:
            if self._status in skip:
                return None
            return self.set(status)

    def subscribe(
        self, callback: Callable[[Status], None], replay: int = 0
    ) -> Callable[[], None]:
        """Receive every subsequent status change; returns an unsubscribe function."""
        return self._channel.subscribe(callback, replay=replay)

    def history(self) -> list[Status]:
        """The most recent statuses, oldest first."""
        return self._channel.history()
