"""Ordered, synchronous publish/subscribe channel."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Broadcast(Generic[T]):
    """Delivers every published value to every current subscriber, in order.

    Dispatch happens on the publishing thread while holding a re-entrant lock,
    so publishers on different threads are serialized. A value published from
    inside a subscriber callback is queued and delivered once the value being
    dispatched has reached every subscriber, so all subscribers observe the
    same sequence.
    """

    def __init__(self, history_limit: int = 64) -> None:
        self._subscribers: list[Callable[[T], None]] = []
        self._history: deque[T] = deque(maxlen=history_limit)
        self._pending: deque[T] = deque()
        self._dispatching = False
        self._lock = threading.RLock()

    def subscribe(self, callback: Callable[[T], None], replay: int = 0) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it.

        ``replay`` re-delivers up to that many of the most recent values to the
        new subscriber before any new ones.
        """
        with self._lock:
            if replay > 0:
                for value in list(self._history)[-replay:]:
                    self._deliver(callback, value)
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: T) -> None:
        with self._lock:
            self._pending.append(value)
            if self._dispatching:
                return
            self._dispatching = True
            try:
                while self._pending:
                    item = self._pending.popleft()
                    self._history.append(item)
                    for callback in list(self._subscribers):
                        self._deliver(callback, item)
            finally:
                self._dispatching = False

    def history(self) -> list[T]:
        with self._lock:
            return list(self._history)

    def _deliver(self, callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Subscriber %r failed on %r", callback, value)
