"""Session data models — connection status, log-line transition rules."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Status(enum.Enum):
    """Connection state of a supervised OpenVPN process."""

    STOPPED = "stopped"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    AUTH = "auth"
    AUTH_USERNAME = "auth_username"
    AUTH_PASSWORD = "auth_password"
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILED = "auth_failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the process is known to be gone (or was never started)."""
        return self in (Status.STOPPED, Status.DISCONNECTED)


class SideEffect(enum.Enum):
    """Work a transition asks other components to do."""

    NONE = "none"
    SUPPLY_USERNAME = "supply_username"
    SUPPLY_PASSWORD = "supply_password"


@dataclass(frozen=True)
class Rule:
    """One row of the log-line pattern table.

    ``only_from`` restricts the rule to the listed current statuses;
    ``not_from`` suppresses it when the current status is listed.
    """

    patterns: tuple[str, ...]
    target: Status
    effect: SideEffect = SideEffect.NONE
    only_from: frozenset[Status] | None = None
    not_from: frozenset[Status] = frozenset()

    def matches(self, line: str) -> bool:
        return any(pattern in line for pattern in self.patterns)

    def next_status(self, current: Status) -> Status | None:
        """The status this rule moves to from ``current``, or None if guarded off."""
        if self.only_from is not None and current not in self.only_from:
            return None
        if current in self.not_from:
            return None
        return self.target


@dataclass(frozen=True)
class Transition:
    """A classified log line: the rule it matched and the line itself."""

    rule: Rule
    line: str

    @property
    def target(self) -> Status:
        return self.rule.target


@dataclass(frozen=True)
class ObservedProcess:
    """A running OS process whose executable name matched."""

    pid: int
    name: str
