"""Locate the OpenVPN executable on the current platform."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

_MACOS_PATHS = (
    "/usr/local/sbin/openvpn",
    "/usr/local/bin/openvpn",
    "/opt/homebrew/bin/openvpn",
)

_LINUX_PATHS = (
    "/usr/sbin/openvpn",
    "/usr/bin/openvpn",
    "/sbin/openvpn",
)


def candidate_paths(platform: str | None = None) -> list[Path]:
    """Default install locations for ``platform``, in probe order."""
    platform = platform or sys.platform
    if platform == "win32":
        roots = [
            os.environ.get("PROGRAMFILES", ""),
            os.environ.get("PROGRAMFILES(X86)", ""),
        ]
        return [Path(root) / "OpenVPN" / "bin" / "openvpn.exe" for root in roots if root]
    if platform == "darwin":
        return [Path(p) for p in _MACOS_PATHS]
    return [Path(p) for p in _LINUX_PATHS]


def _from_override(platform: str) -> str | None:
    override = os.environ.get("OPENVPN_BIN_PATH")
    if not override:
        return None
    path = Path(override)
    if path.is_dir():
        path = path / ("openvpn.exe" if platform == "win32" else "openvpn")
    if path.is_file():
        return str(path)
    logger.warning("OPENVPN_BIN_PATH=%s does not point at an openvpn binary", override)
    return None


def find_openvpn(platform: str | None = None) -> str:
    """Return the path of the OpenVPN binary.

    Checks ``OPENVPN_BIN_PATH`` (a file, or a directory holding ``openvpn``),
    then the platform's default install locations, then ``PATH``. Falls back
    to the bare name so a missing binary surfaces as a spawn failure.
    """
    platform = platform or sys.platform

    override = _from_override(platform)
    if override:
        return override

    for candidate in candidate_paths(platform):
        if candidate.is_file():
            return str(candidate)

    on_path = shutil.which("openvpn")
    if on_path:
        return on_path

    logger.debug("OpenVPN not found in default locations; relying on bare name")
    return "openvpn"
