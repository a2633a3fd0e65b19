"""Document inventory: a flat pandas table of every document in a bundle.

One row per document in section order, then document order, with a fixed
column order so CSV exports are deterministic.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING

from casebundle.core.model import Bundle

if TYPE_CHECKING:  # pragma: no cover
    import pandas as pd


INVENTORY_COLUMNS = [
    "section_order",
    "section_id",
    "section_name",
    "page_prefix",
    "order",
    "document_id",
    "name",
    "title",
    "page_count",
    "selected_pages",
    "document_date",
    "date_precision",
    "has_modified",
    "size_bytes",
    "sha256",
]


def documents_table(bundle: Bundle) -> "pd.DataFrame":
    import pandas as pd  # local import to keep module import-light

    rows = []
    for section in bundle.sorted_sections():
        for doc in section.sorted_documents():
            rows.append(
                {
                    "section_order": section.order,
                    "section_id": section.id,
                    "section_name": section.name,
                    "page_prefix": section.page_prefix,
                    "order": doc.order,
                    "document_id": doc.id,
                    "name": doc.name,
                    "title": doc.display_title,
                    "page_count": doc.page_count,
                    "selected_pages": len(doc.selected_pages) if doc.selected_pages is not None else doc.page_count,
                    "document_date": doc.document_date,
                    "date_precision": doc.date_precision,
                    "has_modified": doc.modified_content is not None,
                    "size_bytes": doc.content.size,
                    "sha256": hashlib.sha256(doc.content.data).hexdigest(),
                }
            )
    return pd.DataFrame(rows, columns=INVENTORY_COLUMNS)


def summarize(df: "pd.DataFrame") -> dict[str, int]:
    """Totals over an inventory table."""
    return {
        "sections": int(df["section_id"].nunique()),
        "documents": int(len(df)),
        "pages": int(df["page_count"].sum()),
        "selected_pages": int(df["selected_pages"].sum()),
        "edited": int(df["has_modified"].sum()),
        "bytes": int(df["size_bytes"].sum()),
    }


def write_inventory_csv(df: "pd.DataFrame", path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    df.loc[:, INVENTORY_COLUMNS].to_csv(p, index=False, lineterminator="\n")
    return p


__all__ = [
    "INVENTORY_COLUMNS",
    "documents_table",
    "summarize",
    "write_inventory_csv",
]
