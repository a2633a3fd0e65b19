"""Helpers shared by CLI commands."""

from __future__ import annotations

from typing import Optional

import typer

from casebundle.bundle.progressive import Progress, ProgressCallback
from casebundle.core.errors import BundleError


def progress_printer(quiet: bool) -> Optional[ProgressCallback]:
    if quiet:
        return None

    def _print(p: Progress) -> None:
        typer.echo(f"[{p.percent:3d}%] {p.message}", err=True)

    return _print


def fail(e: BundleError) -> typer.Exit:
    """Report a load/save failure and return the exit to raise (code 2)."""
    typer.echo(f"error: {e}", err=True)
    return typer.Exit(code=2)
