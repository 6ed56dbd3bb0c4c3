"""Tests for the OpenVPN session supervisor, driven by a fake openvpn binary."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ovpnctl.config import OvpnConfig
from ovpnctl.exceptions import (
    AuthenticationFailure,
    ConnectError,
    ConnectTimeout,
    ProcessExited,
    SpawnFailure,
)
from ovpnctl.session.manager import OpenVpnSession
from ovpnctl.session.models import ObservedProcess, Status

CONNECTS = (
    "say Peer Connection Initiated with [AF_INET]1.2.3.4:1194\n"
    "say Initialization Sequence Completed\n"
    "hang\n"
)


def _session(
    script: str,
    config: OvpnConfig,
    binary: str,
    finder=None,
    **kwargs,
) -> tuple[OpenVpnSession, list[Status], list[str]]:
    if finder is None:
        finder = MagicMock(list=MagicMock(return_value=[]))
    session = OpenVpnSession.from_config_string(
        script, config=config, finder=finder, binary=binary, **kwargs
    )
    statuses: list[Status] = []
    logs: list[str] = []
    session.on_status(statuses.append)
    session.on_log(logs.append)
    return session, statuses, logs


def test_connect_and_disconnect(fast_config: OvpnConfig, fake_openvpn: str):
    session, statuses, logs = _session(CONNECTS, fast_config, fake_openvpn)
    try:
        session.connect()
        assert session.status == Status.CONNECTED
        assert statuses == [Status.CONNECTING, Status.AUTH_SUCCESS, Status.CONNECTED]
        assert "Initialization Sequence Completed" in logs
        assert session.pid is not None
    finally:
        session.disconnect()

    assert statuses[3:] == [Status.DISCONNECTING, Status.DISCONNECTED]
    assert session.status == Status.DISCONNECTED
    assert session.pid is None


def test_every_line_is_logged(fast_config: OvpnConfig, fake_openvpn: str):
    script = "say OpenVPN 2.6.8 x86_64\n\nsay   \nsay TUN/TAP device tun0 opened\n" + CONNECTS
    session, _, logs = _session(script, fast_config, fake_openvpn)
    try:
        session.connect()
    finally:
        session.disconnect()
    assert logs[:2] == ["OpenVPN 2.6.8 x86_64", "TUN/TAP device tun0 opened"]


def test_line_split_across_chunks(fast_config: OvpnConfig, fake_openvpn: str):
    script = "split Initialization Seq|uence Completed\nhang\n"
    session, statuses, logs = _session(script, fast_config, fake_openvpn)
    try:
        session.connect()
    finally:
        session.disconnect()
    assert "Initialization Sequence Completed" in logs
    assert "Initialization Seq" not in logs
    assert statuses[:2] == [Status.CONNECTING, Status.CONNECTED]


def test_interactive_auth(fast_config: OvpnConfig, fake_openvpn: str):
    script = (
        "ask Enter Auth Username:\n"
        "ask Enter Auth Password:\n"
        "say Initialization Sequence Completed\n"
        "hang\n"
    )
    session, statuses, logs = _session(
        script, fast_config, fake_openvpn, username="alice", password="s3cret"
    )
    try:
        session.connect()
    finally:
        session.disconnect()

    assert statuses[:4] == [
        Status.CONNECTING,
        Status.AUTH_USERNAME,
        Status.AUTH_PASSWORD,
        Status.CONNECTED,
    ]
    assert "got: alice" in logs
    assert "got: s3cret" in logs


def test_missing_credentials_fail_connect(fast_config: OvpnConfig, fake_openvpn: str):
    session, statuses, _ = _session("ask Enter Auth Username:\nhang\n", fast_config, fake_openvpn)
    try:
        with pytest.raises(AuthenticationFailure):
            session.connect()
        assert statuses == [Status.CONNECTING, Status.AUTH_USERNAME, Status.AUTH_FAILED]
    finally:
        session.disconnect()
    assert session.status == Status.DISCONNECTED


def test_server_rejects_credentials(fast_config: OvpnConfig, fake_openvpn: str):
    script = "say AUTH: Received control message: AUTH_FAILED\nhang\n"
    session, statuses, _ = _session(script, fast_config, fake_openvpn)
    try:
        with pytest.raises(AuthenticationFailure):
            session.connect()
    finally:
        session.disconnect()
    assert Status.CONNECTED not in statuses


def test_auth_file_and_custom_flags(fast_config: OvpnConfig, fake_openvpn: str):
    script = "args\nauthfile\nsay Initialization Sequence Completed\nhang\n"
    session, _, logs = _session(
        script,
        fast_config,
        fake_openvpn,
        username="alice",
        password="s3cret",
        auth_file=True,
        flags=["--verb", "3"],
    )
    try:
        session.connect()
        args_line = next(line for line in logs if line.startswith("args: "))
        argv = args_line[len("args: "):].split()
        assert argv[:2] == ["--config", str(session.config_path)]
        assert argv[2] == "--auth-user-pass"
        auth_path = Path(argv[3])
        assert auth_path.exists()
        assert argv[4:] == ["--verb", "3"]
        assert "auth: alice|s3cret" in logs
    finally:
        session.disconnect()
    assert not auth_path.exists()


def test_spawn_failure_when_binary_missing(fast_config: OvpnConfig, tmp_path: Path):
    session, statuses, logs = _session(
        "client\ndev tun\n...", fast_config, str(tmp_path / "no-such-openvpn")
    )
    with pytest.raises(SpawnFailure):
        session.connect()
    assert session.status == Status.ERROR
    assert statuses == [Status.CONNECTING, Status.ERROR]
    assert logs and logs[-1].startswith("Error: ")
    session.cleanup()


@patch("ovpnctl.session.manager.find_openvpn")
def test_spawn_failure_via_locator(mock_find: MagicMock, fast_config: OvpnConfig, tmp_path: Path):
    mock_find.return_value = str(tmp_path / "openvpn")
    session = OpenVpnSession.from_config_string(
        "client\ndev tun\n", config=fast_config, finder=MagicMock(list=MagicMock(return_value=[]))
    )
    with pytest.raises(SpawnFailure):
        session.connect()
    assert session.status == Status.ERROR
    mock_find.assert_called_once_with()
    session.cleanup()


def test_process_exit_before_connecting(fast_config: OvpnConfig, fake_openvpn: str):
    session, statuses, _ = _session("say starting\nexit 3\n", fast_config, fake_openvpn)
    try:
        with pytest.raises(ProcessExited) as exc_info:
            session.connect()
        assert exc_info.value.returncode == 3
        assert statuses == [Status.CONNECTING, Status.DISCONNECTED]
    finally:
        session.disconnect()
    # Already disconnected: no second disconnect event
    assert statuses.count(Status.DISCONNECTED) == 1


def test_connect_timeout_disconnects(fast_config: OvpnConfig, fake_openvpn: str):
    fast_config.connect_timeout = 0.5
    session, statuses, _ = _session("say waiting for server\nhang\n", fast_config, fake_openvpn)

    with pytest.raises(ConnectTimeout):
        session.connect()

    assert statuses == [Status.CONNECTING, Status.DISCONNECTING, Status.DISCONNECTED]
    assert session.pid is None
    assert not session.config_path.exists()


def test_exit_after_connect_marks_disconnected(fast_config: OvpnConfig, fake_openvpn: str):
    script = "say Initialization Sequence Completed\nsleep 0.2\nexit 0\n"
    session, statuses, _ = _session(script, fast_config, fake_openvpn)
    done = threading.Event()
    session.on_status(lambda s: s == Status.DISCONNECTED and done.set())
    try:
        session.connect()
        assert done.wait(timeout=5)
        assert statuses == [Status.CONNECTING, Status.CONNECTED, Status.DISCONNECTED]
    finally:
        session.disconnect()
    assert statuses.count(Status.DISCONNECTED) == 1


def test_exiting_line_then_exit_emits_one_disconnected(fast_config: OvpnConfig, fake_openvpn: str):
    script = (
        "say Initialization Sequence Completed\n"
        "sleep 0.1\n"
        "say Exiting due to fatal error\n"
        "exit 1\n"
    )
    session, statuses, _ = _session(script, fast_config, fake_openvpn)
    done = threading.Event()
    session.on_status(lambda s: s == Status.DISCONNECTED and done.set())
    try:
        session.connect()
        assert done.wait(timeout=5)
        # Give the exit notification time to arrive after the "Exiting" line
        time.sleep(0.3)
    finally:
        session.disconnect()
    assert statuses == [Status.CONNECTING, Status.CONNECTED, Status.DISCONNECTED]


def test_reconnect_sequence(fast_config: OvpnConfig, fake_openvpn: str):
    script = (
        "say Initialization Sequence Completed\n"
        "say Successful ARP Flush on interface [3]\n"
        "say SIGUSR1[soft,ping-restart] received, process restarting\n"
        "say Successful ARP Flush on interface [3]\n"
        "say PUSH: Received control message: 'PUSH_REPLY'\n"
        "say PUSH: Received control message: 'PUSH_REPLY'\n"
        "say marker\n"
        "hang\n"
    )
    session, statuses, logs = _session(script, fast_config, fake_openvpn)
    try:
        session.connect()
        deadline = time.monotonic() + 5
        while "marker" not in logs and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        session.disconnect()
    assert statuses[:4] == [
        Status.CONNECTING,
        Status.CONNECTED,
        Status.RECONNECTING,
        Status.CONNECTED,
    ]
    assert statuses[4:] == [Status.DISCONNECTING, Status.DISCONNECTED]


def test_session_can_reconnect(fast_config: OvpnConfig, fake_openvpn: str):
    session, statuses, _ = _session(CONNECTS, fast_config, fake_openvpn)
    try:
        session.connect()
        first_pid = session.pid
        session.connect()
        assert session.pid != first_pid
    finally:
        session.disconnect()
    assert statuses == [
        Status.CONNECTING,
        Status.AUTH_SUCCESS,
        Status.CONNECTED,
        Status.CONNECTING,
        Status.AUTH_SUCCESS,
        Status.CONNECTED,
        Status.DISCONNECTING,
        Status.DISCONNECTED,
    ]


def test_reconnect_after_disconnect_rewrites_temp_config(fast_config: OvpnConfig, fake_openvpn: str):
    session, statuses, _ = _session(CONNECTS, fast_config, fake_openvpn)
    session.connect()
    session.disconnect()
    assert not session.config_path.exists()

    try:
        session.connect()
        assert session.config_path.exists()
    finally:
        session.disconnect()
    assert statuses.count(Status.CONNECTED) == 2


def test_connect_clears_stale_processes_first(
    fast_config: OvpnConfig, fake_openvpn: str, make_finder
):
    stale = ObservedProcess(pid=4242, name="openvpn")
    finder = make_finder([stale], [])
    session, statuses, _ = _session(CONNECTS, fast_config, fake_openvpn, finder=finder)

    with patch("ovpnctl.process.terminator.psutil.Process") as mock_process_cls:
        try:
            session.connect()
            calls_at_connect = finder.calls
        finally:
            session.disconnect()

    assert calls_at_connect >= 1
    mock_process_cls.assert_any_call(4242)
    assert statuses[:3] == [Status.CONNECTING, Status.AUTH_SUCCESS, Status.CONNECTED]


def test_disconnect_while_connecting_aborts(fast_config: OvpnConfig, fake_openvpn: str):
    session, _, _ = _session("hang\n", fast_config, fake_openvpn)
    errors: list[Exception] = []

    def run() -> None:
        try:
            session.connect()
        except ConnectError as exc:
            errors.append(exc)

    t = threading.Thread(target=run)
    t.start()
    deadline = time.monotonic() + 5
    while session.pid is None and time.monotonic() < deadline:
        time.sleep(0.02)
    session.disconnect()
    t.join(timeout=5)

    assert len(errors) == 1
    assert session.status == Status.DISCONNECTED


def test_disconnect_without_connect_stays_stopped(fast_config: OvpnConfig, make_finder):
    finder = make_finder()
    session = OpenVpnSession("office.ovpn", config=fast_config, finder=finder)
    statuses: list[Status] = []
    session.on_status(statuses.append)

    session.disconnect()

    assert session.status == Status.STOPPED
    assert statuses == []
    assert finder.calls == 1


def test_disconnect_leaves_no_processes(fast_config: OvpnConfig, make_finder):
    vpn = ObservedProcess(pid=4242, name="openvpn")
    finder = make_finder([vpn], [vpn], [])
    session = OpenVpnSession("office.ovpn", config=fast_config, finder=finder)

    with patch("ovpnctl.process.terminator.psutil.Process") as mock_process_cls:
        session.disconnect(graceful=True, timeout=1.0)

    mock_process_cls.return_value.kill.assert_not_called()
    assert session.get_processes() == []


def test_cleanup_is_idempotent_and_keeps_caller_config(fast_config: OvpnConfig, tmp_path: Path):
    own = tmp_path / "mine.ovpn"
    own.write_text("client\n", encoding="utf-8")
    session = OpenVpnSession(own, config=fast_config, finder=MagicMock())
    session.cleanup()
    session.cleanup()
    assert own.exists()
    assert not session.owns_config

    temp = OpenVpnSession.from_config_string("client\n", config=fast_config, finder=MagicMock())
    assert temp.owns_config
    assert temp.config_path.parent == fast_config.temp_dir
    temp.cleanup()
    temp.cleanup()
    assert not temp.config_path.exists()


def test_cleanup_failure_is_reported_not_raised(fast_config: OvpnConfig):
    session = OpenVpnSession.from_config_string("client\n", config=fast_config, finder=MagicMock())
    logs: list[str] = []
    session.on_log(logs.append)
    with patch("ovpnctl.session.manager.remove_artifact", return_value="Error cleaning up x: denied"):
        session.cleanup()
    assert logs == ["Error cleaning up x: denied"]
    session.config_path.unlink()


def test_context_manager_tears_down(fast_config: OvpnConfig, fake_openvpn: str):
    session, statuses, _ = _session(CONNECTS, fast_config, fake_openvpn)
    with session:
        session.connect()
    assert statuses[-1] == Status.DISCONNECTED
    assert session.pid is None
    assert not session.config_path.exists()


def test_process_passthroughs(fast_config: OvpnConfig, make_finder):
    vpn = ObservedProcess(pid=99, name="openvpn.exe")
    session = OpenVpnSession("x.ovpn", config=fast_config, finder=make_finder([vpn]))
    assert session.get_processes() == [vpn]

    with patch.object(session._terminator, "terminate") as mock_terminate:
        session.kill_processes(graceful=False, timeout=2.0)
    mock_terminate.assert_called_once_with(graceful=False, timeout=2.0)


def test_late_status_subscriber_replay(fast_config: OvpnConfig, fake_openvpn: str):
    session, _, _ = _session(CONNECTS, fast_config, fake_openvpn)
    try:
        session.connect()
        late: list[Status] = []
        session.on_status(late.append, replay=1)
        assert late == [Status.CONNECTED]
        assert session.status_history()[-1] == Status.CONNECTED
    finally:
        session.disconnect()
