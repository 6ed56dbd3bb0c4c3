"""ProcessFinder protocol and its psutil implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import psutil

from ovpnctl.config import OPENVPN_EXECUTABLE_NAMES
from ovpnctl.session.models import ObservedProcess

logger = logging.getLogger(__name__)


@runtime_checkable
class ProcessFinder(Protocol):
    """Lists live OS processes running the supervised binary."""

    def list(self) -> list[ObservedProcess]:
        """Return every matching live process. Never cached."""
        ...


class PsutilProcessFinder:
    """Finds processes by executable name using psutil.process_iter()."""

    def __init__(self, names: Iterable[str] = OPENVPN_EXECUTABLE_NAMES) -> None:
        self._names = frozenset(names)

    @property
    def names(self) -> frozenset[str]:
        return self._names

    def list(self) -> list[ObservedProcess]:
        found: list[ObservedProcess] = []
        # Vanished processes are skipped by process_iter; denied attrs come back as None
        for proc in psutil.process_iter(["pid", "name", "status"]):
            info = proc.info
            name = info.get("name") or ""
            if name not in self._names:
                continue
            # Zombies are dead already; they only wait for their parent to reap them
            if info.get("status") == psutil.STATUS_ZOMBIE:
                continue
            found.append(ObservedProcess(pid=info["pid"], name=name))
        return found
