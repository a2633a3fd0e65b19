"""Core in-memory data model for a bundle.

Standalone frozen dataclasses with validation in `__post_init__`:
- `BinaryContent` holds a document's bytes with a logical name and media type
- `Document`, `Section`, `Party`, `BundleMetadata` describe the work product
- `PageNumberSettings` / `BatesNumberSettings` are pass-through payloads that
  document generation consumes; unknown keys ride along in `extra`

This module must not import codecs/bundle/cli.
"""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass, field, replace
from typing import Any, BinaryIO, Iterable, Iterator, Optional

DEFAULT_MEDIA_TYPE = "application/pdf"

DATE_PRECISIONS = ("day", "month", "year", "none")


class PartyRole(str, enum.Enum):
    APPLICANT = "applicant"
    RESPONDENT = "respondent"
    CLAIMANT = "claimant"
    DEFENDANT = "defendant"
    APPELLANT = "appellant"
    INTERESTED_PARTY = "interested_party"
    INTERVENER = "intervener"
    OTHER = "other"


def _norm_str(value: Any, *, where: str) -> str:
    """Normalize a required string: strip and reject empty/whitespace."""
    if not isinstance(value, str):
        raise ValueError(f"{where}: expected str, got {type(value).__name__}")
    s = value.strip()
    if not s:
        raise ValueError(f"{where}: must be a non-empty string")
    return s


def _require_int(value: Any, *, where: str, minimum: Optional[int] = None) -> int:
    # Python bool is a subclass of int; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{where}: expected int, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        raise ValueError(f"{where}: must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class BinaryContent:
    """Opaque document bytes plus the logical name and media type they were read under."""

    name: str
    data: bytes
    media_type: str = DEFAULT_MEDIA_TYPE

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)):
            raise TypeError(f"BinaryContent.data: expected bytes, got {type(self.data).__name__}")
        object.__setattr__(self, "data", bytes(self.data))
        object.__setattr__(self, "media_type", self.media_type or DEFAULT_MEDIA_TYPE)

    @property
    def size(self) -> int:
        return len(self.data)

    def read(self) -> bytes:
        return self.data

    def open(self) -> BinaryIO:
        """Return a fresh readable stream over the content."""
        return io.BytesIO(self.data)


@dataclass(frozen=True)
class Document:
    """One binary unit inside a section, with an optional edited variant.

    `selected_pages` uses 1-based page indices; `None` means every page.
    """

    id: str
    name: str
    page_count: int
    order: int
    content: BinaryContent
    document_date: Optional[str] = None
    date_precision: str = "none"
    custom_title: Optional[str] = None
    selected_pages: Optional[tuple[int, ...]] = None
    modified_content: Optional[BinaryContent] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _norm_str(self.id, where="Document.id"))
        _require_int(self.page_count, where=f"Document[{self.id}].page_count", minimum=0)
        _require_int(self.order, where=f"Document[{self.id}].order", minimum=0)
        if not isinstance(self.content, BinaryContent):
            raise TypeError(f"Document[{self.id}].content: expected BinaryContent, got {type(self.content).__name__}")
        if self.modified_content is not None and not isinstance(self.modified_content, BinaryContent):
            raise TypeError(f"Document[{self.id}].modified_content: expected BinaryContent")
        if self.date_precision not in DATE_PRECISIONS:
            raise ValueError(f"Document[{self.id}].date_precision: expected one of {DATE_PRECISIONS}, got {self.date_precision!r}")
        if self.selected_pages is not None:
            pages = tuple(self.selected_pages)
            for p in pages:
                _require_int(p, where=f"Document[{self.id}].selected_pages[*]")
                if p < 1 or p > self.page_count:
                    raise ValueError(f"Document[{self.id}].selected_pages: page {p} outside [1, {self.page_count}]")
            if len(pages) != len(set(pages)):
                raise ValueError(f"Document[{self.id}].selected_pages: must contain unique pages")
            object.__setattr__(self, "selected_pages", pages)

    @property
    def display_title(self) -> str:
        return self.custom_title or self.name

    @property
    def effective_content(self) -> BinaryContent:
        """The edited variant when one exists, else the original."""
        return self.modified_content if self.modified_content is not None else self.content

    def with_modified_content(self, content: BinaryContent) -> "Document":
        return replace(self, modified_content=content)


@dataclass(frozen=True)
class Section:
    id: str
    name: str
    documents: tuple[Document, ...] = ()
    add_divider: bool = False
    order: int = 0
    page_prefix: str = ""
    start_page: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _norm_str(self.id, where="Section.id"))
        object.__setattr__(self, "documents", tuple(self.documents))
        _require_int(self.order, where=f"Section[{self.id}].order", minimum=0)
        _require_int(self.start_page, where=f"Section[{self.id}].start_page", minimum=1)

    def sorted_documents(self) -> list[Document]:
        return sorted(self.documents, key=lambda d: d.order)

    def reorder_documents(self, document_ids: Iterable[str]) -> "Section":
        """Return a section whose documents follow `document_ids`, with orders 0..n-1."""
        ids = list(document_ids)
        by_id = {d.id: d for d in self.documents}
        if sorted(ids) != sorted(by_id):
            raise ValueError(f"Section[{self.id}].reorder_documents: ids must be a permutation of the section's documents")
        docs = tuple(replace(by_id[doc_id], order=i) for i, doc_id in enumerate(ids))
        return replace(self, documents=docs)


@dataclass(frozen=True)
class Party:
    name: str
    role: PartyRole
    order: int = 0
    custom_role: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", PartyRole(self.role))
        if self.role is not PartyRole.OTHER:
            object.__setattr__(self, "custom_role", None)
        _require_int(self.order, where="Party.order", minimum=0)

    @property
    def role_label(self) -> str:
        if self.role is PartyRole.OTHER and self.custom_role:
            return self.custom_role
        return self.role.value.replace("_", " ").title()


@dataclass(frozen=True)
class BundleMetadata:
    """Case/title information; legacy flat party fields are kept total ("" not None)."""

    bundle_title: str = ""
    case_name: str = ""
    case_number: str = ""
    court: str = ""
    date: str = ""
    parties: tuple[Party, ...] = ()
    applicant_name: str = ""
    respondent_name: str = ""
    preparer_name: str = ""
    preparer_role: str = ""
    bundle_type: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parties", tuple(sorted(self.parties, key=lambda p: p.order)))


@dataclass(frozen=True)
class PageNumberSettings:
    position: str = "bottom-center"
    font_size: int = 10
    bold: bool = False
    enabled: bool = True
    start_number: int = 1
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatesNumberSettings:
    enabled: bool = False
    prefix: str = ""
    start_number: int = 1
    digits: int = 3
    position: str = "top-right"
    font_size: int = 8
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Bundle:
    metadata: BundleMetadata = field(default_factory=BundleMetadata)
    sections: tuple[Section, ...] = ()
    page_number_settings: PageNumberSettings = field(default_factory=PageNumberSettings)
    bates_number_settings: BatesNumberSettings = field(default_factory=BatesNumberSettings)
    saved_at: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "sections", tuple(self.sections))
        seen: set[str] = set()
        for doc in self.iter_documents():
            if doc.id in seen:
                raise ValueError(f"Bundle: duplicate document id {doc.id!r}")
            seen.add(doc.id)

    def sorted_sections(self) -> list[Section]:
        return sorted(self.sections, key=lambda s: s.order)

    def iter_documents(self) -> Iterator[Document]:
        """Yield documents in section order, then document order."""
        for section in self.sorted_sections():
            yield from section.sorted_documents()

    @property
    def document_count(self) -> int:
        return sum(len(s.documents) for s in self.sections)


__all__ = [
    "DATE_PRECISIONS",
    "DEFAULT_MEDIA_TYPE",
    "BatesNumberSettings",
    "BinaryContent",
    "Bundle",
    "BundleMetadata",
    "Document",
    "PageNumberSettings",
    "Party",
    "PartyRole",
    "Section",
]
