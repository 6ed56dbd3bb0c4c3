"""CLI command: ovpnctl interfaces — show VPN-like network interfaces."""

from __future__ import annotations

import click
from rich.console import Console

from ovpnctl.network import detect_vpn_interfaces

console = Console(stderr=True)


@click.command()
def interfaces() -> None:
    """List network interfaces that look like VPN tunnels."""
    names = detect_vpn_interfaces()
    if not names:
        console.print("[dim]No VPN-like interfaces are up.[/dim]")
        raise SystemExit(1)
    for name in names:
        console.print(f"  [green]●[/green] {name}")
