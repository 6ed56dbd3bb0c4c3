"""OpenVPN session — owns the child process and drives its status machine."""

from __future__ import annotations

import logging
import queue
import signal
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import IO

from ovpnctl.config import OvpnConfig
from ovpnctl.events import Broadcast
from ovpnctl.exceptions import (
    AuthenticationFailure,
    ConnectError,
    ConnectTimeout,
    ProcessExited,
    SpawnFailure,
)
from ovpnctl.locate import find_openvpn
from ovpnctl.process.finder import ProcessFinder, PsutilProcessFinder
from ovpnctl.process.terminator import EscalatingTerminator
from ovpnctl.session.artifacts import remove_artifact, write_auth_file, write_temp_config
from ovpnctl.session.auth import AuthResponder
from ovpnctl.session.classifier import LineBuffer, classify
from ovpnctl.session.models import ObservedProcess, Status
from ovpnctl.session.state import StatusMachine

logger = logging.getLogger(__name__)

_TERMINAL = frozenset(status for status in Status if status.is_terminal)
_READ_SIZE = 4096


class OpenVpnSession:
    """Supervises one OpenVPN client process at a time.

    ``connect()`` launches OpenVPN and blocks until the tunnel is up or the
    attempt fails. ``disconnect()`` always tears everything down: it never
    raises for signal, kill or file-removal errors, it reports them on the
    log channel instead.

    Callers must tear the session down explicitly (``disconnect()``,
    ``cleanup()`` or a ``with`` block). Nothing is cleaned up on garbage
    collection, so skipping teardown leaks temp files and OpenVPN processes.

    Process discovery goes through the OS process table by executable name,
    so ``disconnect()`` and ``kill_processes()`` also reach OpenVPN processes
    started by other sessions or programs.
    """

    def __init__(
        self,
        config_path: str | Path,
        username: str | None = None,
        password: str | None = None,
        auth_file: bool = False,
        flags: Sequence[str] | None = None,
        *,
        config: OvpnConfig | None = None,
        finder: ProcessFinder | None = None,
        binary: str | None = None,
    ) -> None:
        self._settings = config or OvpnConfig.load()
        self._config_path = Path(config_path)
        self._config_text: str | None = None
        self._username = username
        self._password = password
        self._auth_file = auth_file
        self._flags = list(flags or ())
        self._binary = binary
        self._auth_path: Path | None = None

        self._finder = finder or PsutilProcessFinder(self._settings.executable_names)
        self._terminator = EscalatingTerminator(
            self._finder,
            poll_interval=self._settings.poll_interval,
            retry_delay=self._settings.retry_delay,
        )

        self._machine = StatusMachine()
        self._log: Broadcast[str] = Broadcast()
        self._responder = AuthResponder(
            self._machine, self._stdin, username=username, password=password
        )
        self._responder.attach()

        # --- Guarded by _lock ---
        self._process: subprocess.Popen[bytes] | None = None
        self._reader: threading.Thread | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config_string(
        cls,
        text: str,
        username: str | None = None,
        password: str | None = None,
        auth_file: bool = False,
        flags: Sequence[str] | None = None,
        *,
        config: OvpnConfig | None = None,
        finder: ProcessFinder | None = None,
        binary: str | None = None,
    ) -> OpenVpnSession:
        """Build a session from configuration text written to a temp file."""
        settings = config or OvpnConfig.load()
        path = write_temp_config(text, settings.temp_dir)
        session = cls(
            path,
            username,
            password,
            auth_file,
            flags,
            config=settings,
            finder=finder,
            binary=binary,
        )
        session._config_text = text
        return session

    # -- Observation ---------------------------------------------------------

    @property
    def status(self) -> Status:
        return self._machine.current

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def owns_config(self) -> bool:
        """Whether the config file is a temp file this session deletes."""
        return self._config_text is not None

    @property
    def pid(self) -> int | None:
        with self._lock:
            return self._process.pid if self._process is not None else None

    def on_status(
        self, callback: Callable[[Status], None], replay: int = 0
    ) -> Callable[[], None]:
        """Subscribe to status changes; returns an unsubscribe function."""
        return self._machine.subscribe(callback, replay=replay)

    def on_log(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Subscribe to raw OpenVPN output lines and session error messages."""
        return self._log.subscribe(callback)

    def status_history(self) -> list[Status]:
        return self._machine.history()

    # -- Lifecycle -----------------------------------------------------------

    def connect(self) -> None:
        """Launch OpenVPN and block until connected.

        Raises SpawnFailure, AuthenticationFailure or ConnectTimeout. A timeout
        also disconnects, so no half-started process is left behind.
        """
        self._bootstrap()

        waiter: queue.Queue[Status] = queue.Queue()
        unsubscribe = self._machine.subscribe(waiter.put)
        try:
            proc = self._spawn()
            self._await_connected(proc, waiter)
        finally:
            unsubscribe()

    def disconnect(self, graceful: bool = True, timeout: float | None = None) -> None:
        """Stop OpenVPN, remove temp files and wait for the OS to settle."""
        if timeout is None:
            timeout = self._settings.disconnect_timeout

        self._machine.set_unless(
            Status.DISCONNECTING,
            skip=_TERMINAL | {Status.DISCONNECTING},
        )

        with self._lock:
            proc = self._process
        if proc is not None and graceful:
            self._interrupt(proc, min(self._settings.interrupt_grace, timeout / 2))

        self._terminator.terminate(graceful=graceful, timeout=timeout)
        self._reap(*self._detach())
        self._machine.set_unless(Status.DISCONNECTED, skip=_TERMINAL)
        self.cleanup()

        time.sleep(self._settings.settle_delay)
        logger.info("Disconnected")

    def cleanup(self) -> None:
        """Delete temp config and credential files. Safe to call repeatedly."""
        self._discard_auth_file()
        if self._config_text is not None:
            self._report(remove_artifact(self._config_path))

    def get_processes(self) -> list[ObservedProcess]:
        """Running OpenVPN processes, whoever started them."""
        return self._finder.list()

    def kill_processes(self, graceful: bool = True, timeout: float = 5.0) -> None:
        """Terminate every running OpenVPN process, escalating to kill."""
        self._terminator.terminate(graceful=graceful, timeout=timeout)

    def __enter__(self) -> OpenVpnSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        with self._lock:
            running = self._process is not None
        if running:
            self.disconnect()
        self.cleanup()

    # -- Internals -----------------------------------------------------------

    def _bootstrap(self) -> None:
        # Detach first so the old process's output and exit are ignored
        proc, reader = self._detach()
        if proc is not None:
            logger.info("Stopping previous OpenVPN process (PID %d)", proc.pid)
            self._interrupt(proc, self._settings.interrupt_grace)
        # Stale openvpn processes from earlier runs are cleared as well
        self._terminator.terminate(
            graceful=True, timeout=self._settings.bootstrap_kill_timeout
        )
        self._reap(proc, reader)
        self._discard_auth_file()
        self._machine.set(Status.CONNECTING)

    def _build_args(self, binary: str) -> list[str]:
        args = [binary, "--config", str(self._config_path)]
        if self._auth_file:
            if self._username and self._password:
                self._auth_path = write_auth_file(
                    self._username, self._password, self._settings.temp_dir
                )
                args += ["--auth-user-pass", str(self._auth_path)]
            else:
                logger.warning(
                    "auth_file requested without username and password; "
                    "falling back to interactive prompts"
                )
        args.extend(self._flags)
        return args

    def _spawn(self) -> subprocess.Popen[bytes]:
        if self._config_text is not None and not self._config_path.exists():
            self._config_path = write_temp_config(self._config_text, self._settings.temp_dir)

        binary = self._binary or find_openvpn()
        args = self._build_args(binary)
        logger.info("Starting %s", " ".join(args))

        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except OSError as exc:
            logger.error("Failed to start OpenVPN (%s): %s", binary, exc)
            self._machine.set(Status.ERROR)
            self._log.publish(f"Error: {exc}")
            raise SpawnFailure(f"Connection failed: {exc}") from exc

        reader = threading.Thread(
            target=self._pump,
            args=(proc,),
            name=f"openvpn-reader-{proc.pid}",
            daemon=True,
        )
        with self._lock:
            self._process = proc
            self._reader = reader
        reader.start()
        return proc

    def _await_connected(
        self, proc: subprocess.Popen[bytes], waiter: queue.Queue[Status]
    ) -> None:
        timeout = self._settings.connect_timeout
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                status = waiter.get(timeout=remaining)
            except queue.Empty:
                break

            if status == Status.CONNECTED:
                logger.info("Connected (PID %d)", proc.pid)
                return
            if status == Status.AUTH_FAILED:
                raise AuthenticationFailure("Connection failed: auth_failed")
            if status == Status.ERROR:
                raise SpawnFailure("Connection failed: error")
            if status == Status.DISCONNECTING:
                raise ConnectError("Connection aborted by disconnect()")
            if status == Status.DISCONNECTED:
                raise ProcessExited(proc.poll())

        logger.error("No connection after %gs; disconnecting", timeout)
        self.disconnect()
        raise ConnectTimeout(timeout)

    def _pump(self, proc: subprocess.Popen[bytes]) -> None:
        """Reader thread: child output -> log channel -> classifier -> machine."""
        stream = proc.stdout
        if stream is None:
            return
        buffer = LineBuffer()
        try:
            while True:
                try:
                    chunk = stream.read(_READ_SIZE)
                except (OSError, ValueError):
                    break
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    self._handle_line(proc, line)
            for line in buffer.flush():
                self._handle_line(proc, line)
        finally:
            stream.close()

        returncode = proc.wait()
        self._handle_exit(proc, returncode)

    def _handle_line(self, proc: subprocess.Popen[bytes], line: str) -> None:
        if not self._is_current(proc):
            return
        logger.debug("openvpn[%d]: %s", proc.pid, line)
        self._log.publish(line)
        transition = classify(line)
        if transition is not None:
            self._machine.apply(transition)

    def _handle_exit(self, proc: subprocess.Popen[bytes], returncode: int) -> None:
        if not self._is_current(proc):
            logger.debug("Previous OpenVPN process %d exited (%d)", proc.pid, returncode)
            return
        logger.info("OpenVPN (PID %d) exited with code %d", proc.pid, returncode)
        self._machine.set_unless(Status.DISCONNECTED, skip=_TERMINAL)

    def _is_current(self, proc: subprocess.Popen[bytes]) -> bool:
        with self._lock:
            return self._process is proc

    def _stdin(self) -> IO[bytes] | None:
        with self._lock:
            return self._process.stdin if self._process is not None else None

    def _interrupt(self, proc: subprocess.Popen[bytes], wait: float) -> None:
        """Ctrl+C the child and give it up to ``wait`` seconds to exit."""
        if proc.poll() is not None:
            return
        try:
            if sys.platform == "win32":
                proc.terminate()
            else:
                proc.send_signal(signal.SIGINT)
        except OSError as exc:
            logger.warning("Could not interrupt OpenVPN (PID %d): %s", proc.pid, exc)
            return
        try:
            proc.wait(timeout=wait)
        except subprocess.TimeoutExpired:
            logger.debug("OpenVPN (PID %d) still running after interrupt", proc.pid)

    def _detach(self) -> tuple[subprocess.Popen[bytes] | None, threading.Thread | None]:
        """Drop the child handle; later output from that child is ignored."""
        with self._lock:
            proc, self._process = self._process, None
            reader, self._reader = self._reader, None
        return proc, reader

    def _reap(
        self, proc: subprocess.Popen[bytes] | None, reader: threading.Thread | None
    ) -> None:
        """Kill the detached child if it is still alive, then collect it."""
        if proc is None:
            return

        if proc.poll() is None:
            try:
                proc.kill()
            except OSError as exc:
                self._report(f"Error killing OpenVPN (PID {proc.pid}): {exc}")
        try:
            proc.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            self._report(f"OpenVPN (PID {proc.pid}) did not exit after kill")

        if proc.stdin is not None:
            try:
                proc.stdin.close()
            except OSError:
                pass

        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=1.0)

    def _discard_auth_file(self) -> None:
        if self._auth_path is not None:
            self._report(remove_artifact(self._auth_path))
            self._auth_path = None

    def _report(self, message: str | None) -> None:
        """Forward a swallowed teardown problem to the log channel."""
        if message:
            logger.warning("%s", message)
            self._log.publish(message)
