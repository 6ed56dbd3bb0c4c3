"""Temporary files a session writes: inline configs and credential files."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def write_temp_config(text: str, temp_dir: Path) -> Path:
    """Materialize configuration text as ``config-*.ovpn`` under ``temp_dir``."""
    temp_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix="config-", suffix=".ovpn", dir=temp_dir)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(text)
    logger.debug("Wrote temporary config %s", name)
    return Path(name)


def write_auth_file(username: str, password: str, temp_dir: Path) -> Path:
    """Write an ``--auth-user-pass`` file readable only by the current user."""
    temp_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix="auth-", suffix=".txt", dir=temp_dir)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(f"{username}\n{password}\n")
    path = Path(name)
    path.chmod(0o600)
    logger.debug("Wrote credential file %s", path)
    return path


def remove_artifact(path: Path) -> str | None:
    """Delete ``path`` if present; returns an error message instead of raising."""
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        return f"Error cleaning up {path}: {exc}"
    logger.debug("Removed %s", path)
    return None
