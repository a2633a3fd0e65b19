"""Pytest configuration and shared bundle builders.

The package lives under `src/`; it is put on `sys.path` so the suite runs
even when `pytest` comes from a different interpreter than the editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    sys.path.insert(0, str(src_dir))


# =============================================================================
# Bundle builders
# =============================================================================

SAVED_AT = "2025-01-02T03:04:05Z"


def fake_pdf(label: str, size: int = 64) -> bytes:
    """Deterministic PDF-looking bytes; content is never validated."""
    head = f"%PDF-1.4\n% {label}\n".encode("utf-8")
    body = bytes((i * 7 + len(label)) % 256 for i in range(size))
    return head + body + b"\n%%EOF\n"


def make_content(label: str, **kwargs: Any):
    from casebundle.core.model import BinaryContent

    return BinaryContent(name=kwargs.pop("name", f"{label}.pdf"), data=fake_pdf(label), **kwargs)


def make_document(doc_id: str, order: int = 0, *, modified: bool = False, **kwargs: Any):
    from casebundle.core.model import Document

    kwargs.setdefault("name", f"Document {doc_id}")
    kwargs.setdefault("page_count", 3)
    kwargs.setdefault("content", make_content(doc_id))
    return Document(
        id=doc_id,
        order=order,
        modified_content=make_content(f"{doc_id}-redacted") if modified else None,
        **kwargs,
    )


def make_bundle(doc_counts: tuple[int, ...] = (2, 1), *, saved_at: str | None = SAVED_AT):
    """Bundle with one section per entry in `doc_counts`; ids are `s<i>-d<j>`."""
    from casebundle.core.model import (
        BatesNumberSettings,
        Bundle,
        BundleMetadata,
        PageNumberSettings,
        Party,
        PartyRole,
        Section,
    )

    sections = []
    for i, n in enumerate(doc_counts):
        docs = tuple(
            make_document(
                f"s{i}-d{j}",
                j,
                modified=(j == 0),
                document_date="2024-03-15" if j % 2 == 0 else None,
                date_precision="day" if j % 2 == 0 else "none",
                custom_title="Witness statement" if j == 1 else None,
                selected_pages=(1, 3) if j == 0 else None,
            )
            for j in range(n)
        )
        sections.append(
            Section(
                id=f"s{i}",
                name=f"Section {chr(ord('A') + i)}",
                documents=docs,
                add_divider=(i % 2 == 0),
                order=i,
                page_prefix=chr(ord("A") + i),
                start_page=1,
            )
        )

    metadata = BundleMetadata(
        bundle_title="Smith v Jones",
        case_name="Smith v Jones",
        case_number="CV-2024-001",
        court="High Court",
        date="2024-05-01",
        parties=(
            Party(name="John Smith", role=PartyRole.APPLICANT, order=0),
            Party(name="Jane Jones", role=PartyRole.RESPONDENT, order=1),
            Party(name="Acme Ltd", role=PartyRole.OTHER, order=2, custom_role="Third Party"),
        ),
        bundle_type="civil",
        extra={"isAdversarial": True},
    )
    return Bundle(
        metadata=metadata,
        sections=tuple(sections),
        page_number_settings=PageNumberSettings(position="bottom-right", font_size=12, bold=True),
        bates_number_settings=BatesNumberSettings(enabled=True, prefix="SMITH", start_number=5, digits=4),
        saved_at=saved_at,
    )


def fast_config():
    """Reconstruction config without real pauses."""
    from casebundle.bundle.progressive import ReconstructionConfig

    return ReconstructionConfig(consolidate_every=10, document_pause=0.0, consolidation_pause=0.0)
