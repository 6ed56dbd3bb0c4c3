"""CLI commands: ovpnctl ps / ovpnctl kill — inspect or clear OpenVPN processes."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from ovpnctl.config import OvpnConfig
from ovpnctl.process.finder import PsutilProcessFinder
from ovpnctl.process.terminator import EscalatingTerminator

console = Console(stderr=True)


@click.command()
def ps() -> None:
    """List running OpenVPN processes."""
    config = OvpnConfig.load()
    processes = PsutilProcessFinder(config.executable_names).list()
    if not processes:
        console.print("[dim]No OpenVPN processes running.[/dim]")
        return

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("PID", style="cyan", justify="right")
    table.add_column("Name")
    for proc in processes:
        table.add_row(str(proc.pid), proc.name)
    console.print(table)


@click.command()
@click.option("--force", is_flag=True, help="Skip the interrupt and kill immediately.")
@click.option(
    "--timeout",
    type=float,
    default=5.0,
    show_default=True,
    help="Seconds to wait for a graceful exit before killing.",
)
def kill(force: bool, timeout: float) -> None:
    """Terminate every running OpenVPN process."""
    config = OvpnConfig.load()
    finder = PsutilProcessFinder(config.executable_names)
    before = finder.list()
    if not before:
        console.print("[dim]No OpenVPN processes running.[/dim]")
        return

    console.print(f"Stopping {len(before)} OpenVPN process(es)...")
    terminator = EscalatingTerminator(
        finder,
        poll_interval=config.poll_interval,
        retry_delay=config.retry_delay,
    )
    terminator.terminate(graceful=not force, timeout=timeout)

    remaining = finder.list()
    if remaining:
        pids = ", ".join(str(p.pid) for p in remaining)
        console.print(f"[red]Still running:[/red] {pids}")
        raise SystemExit(1)
    console.print("[green]All OpenVPN processes stopped.[/green]")
