"""CLI command: ovpnctl connect — start OpenVPN and stay attached until stopped."""

from __future__ import annotations

import signal
import threading
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ovpnctl.config import OvpnConfig
from ovpnctl.exceptions import ConnectError, ProfileError
from ovpnctl.profile.loader import find_profile
from ovpnctl.profile.models import Profile
from ovpnctl.session.manager import OpenVpnSession
from ovpnctl.session.models import Status

console = Console(stderr=True)

_STATUS_STYLE = {
    Status.CONNECTED: "green",
    Status.AUTH_SUCCESS: "green",
    Status.CONNECTING: "cyan",
    Status.RECONNECTING: "yellow",
    Status.AUTH_USERNAME: "yellow",
    Status.AUTH_PASSWORD: "yellow",
    Status.DISCONNECTING: "dim",
    Status.DISCONNECTED: "dim",
    Status.ERROR: "red",
    Status.AUTH_FAILED: "red",
}


@click.command()
@click.argument("ovpn", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--profile", "-p", "profile_ref", help="Profile name or YAML path.")
@click.option("--username", "-u", help="Username for the auth prompt.")
@click.option(
    "--password-env",
    metavar="VAR",
    help="Environment variable holding the password.",
)
@click.option(
    "--auth-file",
    is_flag=True,
    help="Pass credentials via a temporary --auth-user-pass file.",
)
@click.option(
    "--flag",
    "flags",
    multiple=True,
    help="Extra argument appended to the openvpn command line (repeatable).",
)
@click.option("--timeout", type=float, default=None, help="Connect timeout in seconds.")
@click.option("--show-log", is_flag=True, help="Echo raw OpenVPN output.")
def connect(
    ovpn: str | None,
    profile_ref: str | None,
    username: str | None,
    password_env: str | None,
    auth_file: bool,
    flags: tuple[str, ...],
    timeout: float | None,
    show_log: bool,
) -> None:
    """Connect with an .ovpn file or a saved profile, then stay attached."""
    config = OvpnConfig.load()
    if timeout is not None:
        config.connect_timeout = timeout

    try:
        profile = _resolve_profile(
            ovpn, profile_ref, username, password_env, auth_file, flags, config
        )
        session = profile.build_session(config)
    except ProfileError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(2)

    done = threading.Event()

    def on_status(status: Status) -> None:
        style = _STATUS_STYLE.get(status, "white")
        console.print(f"  [{style}]● {status.value}[/{style}]")
        if status == Status.DISCONNECTED:
            done.set()

    def on_log(line: str) -> None:
        console.print(f"  {line}", style="dim", markup=False, highlight=False)

    session.on_status(on_status)
    if show_log:
        session.on_log(on_log)

    console.print(
        f"[bold]ovpnctl[/bold] connecting [cyan]{profile.name}[/cyan] "
        f"({session.config_path})"
    )

    try:
        session.connect()
    except ConnectError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        session.disconnect(graceful=False, timeout=1.0)
        raise SystemExit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted while connecting[/yellow]")
        session.disconnect(graceful=False, timeout=1.0)
        raise SystemExit(130)

    console.print("  Press Ctrl+C to disconnect.\n")

    def _signal_handler(signum: int, frame: object) -> None:
        done.set()

    previous = {
        sig: signal.signal(sig, _signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        while not done.wait(timeout=0.5):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    console.print("\n[dim]Disconnecting...[/dim]")
    session.disconnect()
    _print_summary(session)


def _resolve_profile(
    ovpn: str | None,
    profile_ref: str | None,
    username: str | None,
    password_env: str | None,
    auth_file: bool,
    flags: tuple[str, ...],
    config: OvpnConfig,
) -> Profile:
    if (ovpn is None) == (profile_ref is None):
        raise ProfileError("Give exactly one of an .ovpn file or --profile")

    if profile_ref is not None:
        base = find_profile(profile_ref, config)
    else:
        ovpn_path = Path(str(ovpn))
        base = Profile(name=ovpn_path.stem, config_path=ovpn_path.resolve())

    # Command-line options override the profile
    return Profile(
        name=base.name,
        config_path=base.config_path,
        config_text=base.config_text,
        username=username or base.username,
        password=None if password_env else base.password,
        password_env=password_env or base.password_env,
        auth_file=auth_file or base.auth_file,
        flags=base.flags + flags,
    )


def _print_summary(session: OpenVpnSession) -> None:
    console.print("\n[bold]Session Summary[/bold]")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()

    table.add_row("Config", str(session.config_path))
    table.add_row("Status", session.status.value)
    table.add_row(
        "Transitions", " → ".join(s.value for s in session.status_history())
    )
    console.print(table)

    if session.status != Status.DISCONNECTED:
        raise SystemExit(1)
