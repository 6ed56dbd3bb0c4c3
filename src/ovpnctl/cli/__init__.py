"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from ovpnctl import __version__


@click.group()
@click.version_option(version=__version__, prog_name="ovpnctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """ovpnctl — run and supervise an OpenVPN client."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from ovpnctl.cli.connect import connect  # noqa: F811
    from ovpnctl.cli.interfaces import interfaces  # noqa: F811
    from ovpnctl.cli.processes import kill, ps  # noqa: F811

    main.add_command(connect)
    main.add_command(ps)
    main.add_command(kill)
    main.add_command(interfaces)


_register_commands()
