"""Connection profile — immutable description of how to start a session."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ovpnctl.config import OvpnConfig
from ovpnctl.exceptions import ProfileError
from ovpnctl.session.manager import OpenVpnSession


@dataclass(frozen=True)
class Profile:
    """A named OpenVPN connection: config source, credentials, extra flags.

    Exactly one of ``config_path`` / ``config_text`` is set. The password is
    either inline or read from the environment variable ``password_env`` when
    the session is built.
    """

    name: str
    config_path: Path | None = None
    config_text: str | None = None
    username: str | None = None
    password: str | None = None
    password_env: str | None = None
    auth_file: bool = False
    flags: tuple[str, ...] = ()

    def resolve_password(self) -> str | None:
        if self.password is not None:
            return self.password
        if self.password_env:
            value = os.environ.get(self.password_env)
            if value is None:
                raise ProfileError(
                    f"Profile '{self.name}': environment variable "
                    f"{self.password_env} is not set"
                )
            return value
        return None

    def build_session(self, config: OvpnConfig | None = None) -> OpenVpnSession:
        password = self.resolve_password()
        if self.config_text is not None:
            return OpenVpnSession.from_config_string(
                self.config_text,
                self.username,
                password,
                self.auth_file,
                self.flags,
                config=config,
            )
        if self.config_path is None:
            raise ProfileError(f"Profile '{self.name}' has no config")
        return OpenVpnSession(
            self.config_path,
            self.username,
            password,
            self.auth_file,
            self.flags,
            config=config,
        )
