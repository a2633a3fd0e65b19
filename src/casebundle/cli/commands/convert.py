"""`casebundle convert` and `casebundle recover` commands.

`convert` rewrites a saved bundle into the container implied by `--out`
(`.json` inline, `.cbz` archive) or forced by `--format`.

`recover` turns a large inline `.json` save, which may be too heavy to load
interactively, into `<stem>_recovered.cbz` next to it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from casebundle.bundle.io import convert_bundle, recovered_path
from casebundle.cli.commands._common import fail, progress_printer
from casebundle.codecs.detect import ContainerFormat
from casebundle.core.errors import BundleError


def register(app: typer.Typer) -> None:
    @app.command("convert")
    def convert(
        src: str = typer.Argument(..., help="Saved bundle to read (.json or .cbz)."),
        out: str = typer.Option(..., "--out", help="Output bundle path."),
        format: Optional[str] = typer.Option(None, "--format", help="Output container: inline|archive."),
        quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print load progress."),
    ) -> None:
        """Convert a saved bundle between container formats."""
        fmt = None
        if format is not None:
            try:
                fmt = ContainerFormat(format)
            except ValueError as e:
                raise typer.BadParameter("format must be 'inline' or 'archive'") from e
        try:
            written = convert_bundle(Path(src), Path(out), format=fmt, on_progress=progress_printer(quiet))
        except BundleError as e:
            raise fail(e) from e
        typer.echo(str(written))

    @app.command("recover")
    def recover(
        src: str = typer.Argument(..., help="Inline .json bundle save to recover."),
        quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print load progress."),
    ) -> None:
        """Rewrite an inline .json save as <stem>_recovered.cbz."""
        src_p = Path(src)
        if not src_p.exists():
            raise typer.BadParameter(f"file not found: {src}")
        out = recovered_path(src_p)
        try:
            written = convert_bundle(src_p, out, format=ContainerFormat.ARCHIVE, on_progress=progress_printer(quiet))
        except BundleError as e:
            raise fail(e) from e

        in_size = src_p.stat().st_size
        out_size = written.stat().st_size
        saved = (1 - out_size / in_size) * 100 if in_size else 0.0
        typer.echo(str(written))
        typer.echo(f"{in_size / (1024 * 1024):.2f} MB -> {out_size / (1024 * 1024):.2f} MB ({saved:.0f}% smaller)")
