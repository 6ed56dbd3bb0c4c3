"""Map raw OpenVPN output lines to status transitions."""

from __future__ import annotations

import codecs
import re

from ovpnctl.session.models import Rule, SideEffect, Status, Transition

# Order matters: the first matching rule wins.
TRANSITION_TABLE: tuple[Rule, ...] = (
    Rule(("Initialization Sequence Completed",), Status.CONNECTED),
    Rule(
        ("PUSH: Received control message",),
        Status.CONNECTED,
        not_from=frozenset({Status.CONNECTED}),
    ),
    Rule(("Exiting",), Status.DISCONNECTED),
    Rule(("Enter Auth Username:",), Status.AUTH_USERNAME, SideEffect.SUPPLY_USERNAME),
    Rule(("Enter Auth Password:",), Status.AUTH_PASSWORD, SideEffect.SUPPLY_PASSWORD),
    Rule(("Verification Failed", "AUTH_FAILED"), Status.AUTH_FAILED),
    Rule(("Peer Connection Initiated",), Status.AUTH_SUCCESS),
    Rule(
        ("SIGUSR1[soft,ping-restart] received, process restarting",),
        Status.RECONNECTING,
    ),
    Rule(
        ("Successful ARP Flush on interface",),
        Status.CONNECTED,
        only_from=frozenset({Status.RECONNECTING}),
    ),
)

_LINE_BREAK = re.compile(r"\r?\n")


def classify(line: str, table: tuple[Rule, ...] = TRANSITION_TABLE) -> Transition | None:
    """Return the transition for the first rule matching ``line``, if any."""
    for rule in table:
        if rule.matches(line):
            return Transition(rule=rule, line=line)
    return None


class LineBuffer:
    """Reassembles complete lines from arbitrarily split output chunks.

    Lines end at ``\\n`` or ``\\r\\n``. Blank lines are dropped, and a trailing
    fragment is held back until its terminator arrives (or ``flush()`` is
    called at end of stream).
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._partial = ""

    def feed(self, chunk: bytes | str) -> list[str]:
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        parts = _LINE_BREAK.split(self._partial + text)
        # A trailing "\r" stays in the fragment; it may be half of a split "\r\n"
        self._partial = parts.pop()
        return [line for line in parts if line.strip()]

    def flush(self) -> list[str]:
        rest = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        rest = rest.rstrip("\r")
        return [rest] if rest.strip() else []
