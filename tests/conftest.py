"""Shared test fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from ovpnctl.config import OvpnConfig
from ovpnctl.session.models import ObservedProcess


class FakeFinder:
    """ProcessFinder stand-in returning a scripted sequence of results."""

    def __init__(self, *results: list[ObservedProcess]) -> None:
        self._results = list(results)
        self.calls = 0

    def list(self) -> list[ObservedProcess]:
        self.calls += 1
        if not self._results:
            return []
        if len(self._results) == 1:
            return list(self._results[0])
        return list(self._results.pop(0))


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def fast_config(tmp_path: Path) -> OvpnConfig:
    return OvpnConfig(
        connect_timeout=5.0,
        poll_interval=0.01,
        retry_delay=0.01,
        interrupt_grace=0.5,
        bootstrap_kill_timeout=0.05,
        disconnect_timeout=0.2,
        settle_delay=0.0,
        temp_dir=tmp_path / "tmp",
        profile_dir=tmp_path / "profiles",
    )


@pytest.fixture
def fake_openvpn(fixtures_dir: Path, tmp_path: Path) -> str:
    """An executable fake openvpn running under the current interpreter."""
    if sys.platform == "win32":
        pytest.skip("fake openvpn executable needs a POSIX shebang")
    source = (fixtures_dir / "fake_openvpn.py").read_text(encoding="utf-8")
    path = tmp_path / "bin" / "openvpn"
    path.parent.mkdir()
    path.write_text(f"#!{sys.executable}\n{source}", encoding="utf-8")
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def make_finder() -> type[FakeFinder]:
    return FakeFinder
