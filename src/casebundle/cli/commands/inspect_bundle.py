"""`casebundle inspect` command.

Loads a saved bundle (either container) and prints its metadata and a
document inventory table; `--csv` also writes the inventory to disk and
`--verify` checks archive entries against their recorded hashes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from casebundle.bundle.io import load_bundle
from casebundle.cli.commands._common import fail, progress_printer
from casebundle.core.errors import BundleError
from casebundle.core.inventory import documents_table, summarize, write_inventory_csv


def register(app: typer.Typer) -> None:
    @app.command("inspect")
    def inspect(
        path: str = typer.Argument(..., help="Path to a saved bundle (.json or .cbz)."),
        csv: Optional[str] = typer.Option(None, "--csv", help="Write the document inventory to this CSV path."),
        verify: bool = typer.Option(False, "--verify", help="Check archive entries against their recorded sha256."),
        quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print load progress."),
    ) -> None:
        """Show the metadata and documents of a saved bundle."""
        try:
            bundle = load_bundle(Path(path), on_progress=progress_printer(quiet), verify_hashes=verify)
        except BundleError as e:
            raise fail(e) from e

        m = bundle.metadata
        typer.echo(f"title: {m.bundle_title}")
        typer.echo(f"case number: {m.case_number}")
        typer.echo(f"court: {m.court}")
        typer.echo(f"date: {m.date}")
        for party in m.parties:
            typer.echo(f"party: {party.name} ({party.role_label})")
        if bundle.saved_at:
            typer.echo(f"saved at: {bundle.saved_at}")

        df = documents_table(bundle)
        totals = summarize(df)
        typer.echo(
            f"{totals['sections']} sections, {totals['documents']} documents, "
            f"{totals['pages']} pages ({totals['edited']} edited)"
        )
        if not df.empty:
            typer.echo(df.loc[:, ["section_name", "order", "name", "page_count", "has_modified"]].to_string(index=False))

        if csv:
            typer.echo(str(write_inventory_csv(df, csv)))
