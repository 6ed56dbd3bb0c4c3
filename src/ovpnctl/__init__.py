"""ovpnctl — supervise an OpenVPN client process and track its connection status."""

__version__ = "0.1.0"

from ovpnctl.exceptions import (  # noqa: E402
    AuthenticationFailure,
    ConnectError,
    ConnectTimeout,
    OvpnError,
    ProcessExited,
    SpawnFailure,
)
from ovpnctl.session.manager import OpenVpnSession  # noqa: E402
from ovpnctl.session.models import ObservedProcess, Status  # noqa: E402

__all__ = [
    "AuthenticationFailure",
    "ConnectError",
    "ConnectTimeout",
    "ObservedProcess",
    "OpenVpnSession",
    "OvpnError",
    "ProcessExited",
    "SpawnFailure",
    "Status",
    "__version__",
]
