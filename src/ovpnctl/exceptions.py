"""Exceptions raised to callers of a supervised OpenVPN session.

Only connect failures are raised. Termination and cleanup problems are logged
and reported on the session's log channel, never raised, so teardown always
runs to completion.
"""

from __future__ import annotations


class OvpnError(Exception):
    """Base exception for ovpnctl."""


class ConnectError(OvpnError):
    """``connect()`` did not reach the connected state."""


class SpawnFailure(ConnectError):
    """The OpenVPN binary could not be found or the OS refused to launch it."""


class ProcessExited(SpawnFailure):
    """The OpenVPN process exited before the tunnel came up."""

    def __init__(self, returncode: int | None) -> None:
        self.returncode = returncode
        super().__init__(f"OpenVPN exited before connecting (exit code {returncode})")


class AuthenticationFailure(ConnectError):
    """A credential prompt had no configured answer, or the server rejected it."""


class ConnectTimeout(ConnectError):
    """No connected/failed status arrived before the deadline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Connection timeout after {timeout:g}s")


class ProfileError(ValueError):
    """A connection profile is malformed."""
