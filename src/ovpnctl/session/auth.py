"""Answer OpenVPN's interactive credential prompts."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import IO

from ovpnctl.session.classifier import TRANSITION_TABLE
from ovpnctl.session.models import SideEffect, Status
from ovpnctl.session.state import StatusMachine

logger = logging.getLogger(__name__)

# Statuses whose rule asks for a credential on stdin
_EFFECTS: dict[Status, SideEffect] = {
    rule.target: rule.effect for rule in TRANSITION_TABLE if rule.effect is not SideEffect.NONE
}


class AuthResponder:
    """Writes the configured username/password to the child's stdin on demand.

    A prompt with nothing configured to answer it fails the connection
    (``auth_failed``) instead of leaving OpenVPN waiting on stdin.
    """

    def __init__(
        self,
        machine: StatusMachine,
        stdin: Callable[[], IO[bytes] | None],
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self._machine = machine
        self._stdin = stdin
        self._username = username
        self._password = password
        self._unsubscribe: Callable[[], None] | None = None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._machine.subscribe(self._on_status)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_status(self, status: Status) -> None:
        effect = _EFFECTS.get(status, SideEffect.NONE)
        if effect is SideEffect.SUPPLY_USERNAME:
            self._answer("username", self._username)
        elif effect is SideEffect.SUPPLY_PASSWORD:
            self._answer("password", self._password)

    def _answer(self, kind: str, value: str | None) -> None:
        if not value:
            logger.error("OpenVPN asked for a %s but none is configured", kind)
            self._machine.set(Status.AUTH_FAILED)
            return

        stream = self._stdin()
        if stream is None:
            logger.error("Cannot send %s: OpenVPN stdin is not available", kind)
            self._machine.set(Status.AUTH_FAILED)
            return

        try:
            stream.write(f"{value}\n".encode())
            stream.flush()
        except (BrokenPipeError, OSError, ValueError) as exc:
            logger.error("Failed to send %s to OpenVPN: %s", kind, exc)
            self._machine.set(Status.AUTH_FAILED)
            return
        logger.info("Sent %s to OpenVPN", kind)
