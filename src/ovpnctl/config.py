"""Global configuration — timeouts, temp paths, env vars, defaults."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

# Executable names the OpenVPN client runs under on Linux/macOS and Windows
OPENVPN_EXECUTABLE_NAMES: tuple[str, ...] = ("openvpn", "openvpn.exe")


def _default_temp_dir() -> Path:
    override = os.environ.get("OVPNCTL_TEMP_DIR")
    if override:
        return Path(override)
    return Path(tempfile.gettempdir()) / "openvpn-client"


def _default_profile_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "ovpnctl" / "profiles"
    return Path.home() / ".config" / "ovpnctl" / "profiles"


@dataclass
class OvpnConfig:
    """Timing and filesystem settings shared by every session.

    All durations are in seconds.
    """

    connect_timeout: float = 30.0
    poll_interval: float = 0.5
    retry_delay: float = 1.0
    interrupt_grace: float = 0.5
    bootstrap_kill_timeout: float = 1.0
    disconnect_timeout: float = 5.0
    settle_delay: float = 0.25
    temp_dir: Path = field(default_factory=_default_temp_dir)
    profile_dir: Path = field(default_factory=_default_profile_dir)
    executable_names: tuple[str, ...] = OPENVPN_EXECUTABLE_NAMES

    @classmethod
    def load(cls) -> OvpnConfig:
        """Load config from environment variables with defaults."""
        config = cls()

        env_timeout = os.environ.get("OVPNCTL_CONNECT_TIMEOUT")
        if env_timeout:
            config.connect_timeout = float(env_timeout)

        env_interval = os.environ.get("OVPNCTL_POLL_INTERVAL")
        if env_interval:
            config.poll_interval = float(env_interval)

        env_settle = os.environ.get("OVPNCTL_SETTLE_DELAY")
        if env_settle:
            config.settle_delay = float(env_settle)

        return config
