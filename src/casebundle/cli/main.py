"""casebundle CLI entrypoint."""

from __future__ import annotations

import logging

import typer

app = typer.Typer(
    name="casebundle",
    add_completion=False,
    no_args_is_help=True,
    help="Inspect, convert and recover saved court bundles.",
)


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    """casebundle CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("version")
def version() -> None:
    """Print the installed casebundle version."""
    from casebundle import __version__

    typer.echo(__version__)


def _register_commands() -> None:
    """Register CLI subcommands.

    Importing these modules must remain lightweight so `casebundle --help` is fast.
    """
    from casebundle.cli.commands import autosave as autosave_cmd
    from casebundle.cli.commands import convert as convert_cmd
    from casebundle.cli.commands import inspect_bundle as inspect_cmd

    inspect_cmd.register(app)
    convert_cmd.register(app)
    autosave_cmd.register(app)


_register_commands()
