"""`casebundle autosave` commands: status, restore, clear.

The slot directory defaults to `$CASEBUNDLE_AUTOSAVE_DIR` or `~/.casebundle`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from casebundle.bundle.autosave import AutoSaveSlot, format_autosave_age
from casebundle.bundle.io import save_bundle
from casebundle.cli.commands._common import fail, progress_printer
from casebundle.core.errors import BundleError

autosave_app = typer.Typer(no_args_is_help=True, help="Inspect or recover the auto-save slot.")


def _slot(directory: Optional[str]) -> AutoSaveSlot:
    return AutoSaveSlot(Path(directory) if directory else None)


@autosave_app.command("status")
def status(
    directory: Optional[str] = typer.Option(None, "--dir", help="Auto-save directory."),
) -> None:
    """Report whether a recoverable auto-save exists."""
    slot = _slot(directory)
    record = slot.read()
    if record is None or not record.has_content:
        typer.echo("no auto-save")
        raise typer.Exit(code=1)
    m = record.envelope.metadata
    typer.echo(f"{slot.path}")
    typer.echo(f"saved {format_autosave_age(record.timestamp)}")
    typer.echo(f"title: {m.bundle_title or m.case_name}")
    typer.echo(f"documents: {record.envelope.document_count}")


@autosave_app.command("restore")
def restore(
    out: str = typer.Option(..., "--out", help="Where to write the recovered bundle (.json or .cbz)."),
    directory: Optional[str] = typer.Option(None, "--dir", help="Auto-save directory."),
    keep: bool = typer.Option(False, "--keep", help="Keep the auto-save after a successful restore."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print load progress."),
) -> None:
    """Restore the auto-saved bundle and save it to a file."""
    slot = _slot(directory)
    try:
        bundle = asyncio.run(slot.restore(on_progress=progress_printer(quiet)))
    except BundleError as e:
        raise fail(e) from e
    if bundle is None:
        typer.echo("no auto-save")
        raise typer.Exit(code=1)
    written = save_bundle(Path(out), bundle)
    if not keep:
        slot.clear()
    typer.echo(str(written))


@autosave_app.command("clear")
def clear(
    directory: Optional[str] = typer.Option(None, "--dir", help="Auto-save directory."),
) -> None:
    """Discard the auto-save slot."""
    _slot(directory).clear()
    typer.echo("cleared")


def register(app: typer.Typer) -> None:
    app.add_typer(autosave_app, name="autosave")
