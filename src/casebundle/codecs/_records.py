"""Record shapes shared by the inline and archive container codecs.

Both containers store the same logical schema (camelCase JSON keys):

    {
      "metadata": {...},
      "sections": [
        {"id", "name", "addDivider", "order", "pagePrefix", "startPage",
         "documents": [{"id", "name", "pageCount", "order", "documentDate",
                        "datePrecision", "customTitle", "selectedPages",
                        "fileName", "mediaType", "modifiedFileName", ...}]}
      ],
      "pageNumberSettings": {...},
      "batesNumberSettings": {...},
      "savedAt": "2025-01-01T00:00:00Z"
    }

and differ only in where the document bytes live. Parsing produces a
`ContainerEnvelope` of lightweight `DocumentRecord`s so readers can restore
documents one at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Protocol

from casebundle.codecs.detect import ContainerFormat
from casebundle.core.errors import DocumentRestoreError, MalformedContainerError
from casebundle.core.migrate import metadata_to_dict, migrate_metadata, resolve_date_precision
from casebundle.core.model import (
    DEFAULT_MEDIA_TYPE,
    BatesNumberSettings,
    BinaryContent,
    Bundle,
    BundleMetadata,
    Document,
    PageNumberSettings,
    Section,
)

_PAGE_KEYS = {
    "position": "position",
    "fontSize": "font_size",
    "bold": "bold",
    "enabled": "enabled",
    "startNumber": "start_number",
}

_BATES_KEYS = {
    "enabled": "enabled",
    "prefix": "prefix",
    "startNumber": "start_number",
    "digits": "digits",
    "position": "position",
    "fontSize": "font_size",
}


@dataclass(frozen=True)
class DocumentRecord:
    """A document as declared in a container, before its bytes are restored."""

    section_index: int
    index: int
    id: str
    name: str
    page_count: int
    order: int
    document_date: Optional[str]
    date_precision: str
    custom_title: Optional[str]
    selected_pages: Optional[tuple[int, ...]]
    file_name: str
    modified_file_name: str
    media_type: str
    modified_media_type: str
    payload: Mapping[str, Any] = field(repr=False, compare=False, default_factory=dict)


@dataclass(frozen=True)
class SectionRecord:
    id: str
    name: str
    add_divider: bool
    order: int
    page_prefix: str
    start_page: int
    documents: tuple[DocumentRecord, ...]


@dataclass(frozen=True)
class ContainerEnvelope:
    metadata: BundleMetadata
    sections: tuple[SectionRecord, ...]
    page_number_settings: PageNumberSettings
    bates_number_settings: BatesNumberSettings
    saved_at: Optional[str]
    version: Optional[str] = None

    @property
    def document_count(self) -> int:
        return sum(len(s.documents) for s in self.sections)

    def iter_documents(self) -> Iterator[DocumentRecord]:
        """Yield document records in section order, then document order."""
        sections = sorted(enumerate(self.sections), key=lambda item: (item[1].order, item[0]))
        for _, section in sections:
            yield from sorted(section.documents, key=lambda d: (d.order, d.index))


class ContainerReader(Protocol):
    """What the progressive loader needs from an opened container."""

    format: ContainerFormat
    envelope: ContainerEnvelope

    def decode_document(self, record: DocumentRecord) -> Document: ...

    def close(self) -> None: ...


# ----------------------------
# settings
# ----------------------------


def _settings_from_dict(cls: type, keys: Mapping[str, str], raw: Any, *, where: str) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise MalformedContainerError(f"{where}: expected JSON object, got {type(raw).__name__}")
    kwargs = {attr: raw[key] for key, attr in keys.items() if key in raw}
    extra = {k: v for k, v in raw.items() if k not in keys}
    return cls(**kwargs, extra=extra)


def _settings_to_dict(settings: Any, keys: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = dict(settings.extra)
    for key, attr in keys.items():
        out[key] = getattr(settings, attr)
    return out


def page_settings_from_dict(raw: Any) -> PageNumberSettings:
    return _settings_from_dict(PageNumberSettings, _PAGE_KEYS, raw, where="pageNumberSettings")


def page_settings_to_dict(settings: PageNumberSettings) -> dict[str, Any]:
    return _settings_to_dict(settings, _PAGE_KEYS)


def bates_settings_from_dict(raw: Any) -> BatesNumberSettings:
    return _settings_from_dict(BatesNumberSettings, _BATES_KEYS, raw, where="batesNumberSettings")


def bates_settings_to_dict(settings: BatesNumberSettings) -> dict[str, Any]:
    return _settings_to_dict(settings, _BATES_KEYS)


# ----------------------------
# writing
# ----------------------------


def document_fields(doc: Document) -> dict[str, Any]:
    """Descriptive fields of a document (never its bytes)."""
    out: dict[str, Any] = {
        "id": doc.id,
        "name": doc.name,
        "pageCount": doc.page_count,
        "order": doc.order,
        "datePrecision": doc.date_precision,
        "fileName": doc.content.name,
        "mediaType": doc.content.media_type,
    }
    if doc.document_date is not None:
        out["documentDate"] = doc.document_date
    if doc.custom_title is not None:
        out["customTitle"] = doc.custom_title
    if doc.selected_pages is not None:
        out["selectedPages"] = list(doc.selected_pages)
    if doc.modified_content is not None:
        out["modifiedFileName"] = doc.modified_content.name
        out["modifiedMediaType"] = doc.modified_content.media_type
    return out


def section_fields(section: Section) -> dict[str, Any]:
    return {
        "id": section.id,
        "name": section.name,
        "addDivider": section.add_divider,
        "order": section.order,
        "pagePrefix": section.page_prefix,
        "startPage": section.start_page,
    }


def envelope_fields(bundle: Bundle, *, saved_at: str) -> dict[str, Any]:
    return {
        "metadata": metadata_to_dict(bundle.metadata),
        "pageNumberSettings": page_settings_to_dict(bundle.page_number_settings),
        "batesNumberSettings": bates_settings_to_dict(bundle.bates_number_settings),
        "savedAt": saved_at,
    }


# ----------------------------
# parsing
# ----------------------------


def _require_dict(value: Any, *, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedContainerError(f"{where}: expected JSON object, got {type(value).__name__}")
    return value


def _require_list(value: Any, *, where: str) -> list[Any]:
    if not isinstance(value, list):
        raise MalformedContainerError(f"{where}: expected JSON array, got {type(value).__name__}")
    return value


def _require_int(value: Any, *, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedContainerError(f"{where}: expected int, got {type(value).__name__}")
    return value


def _require_str(value: Any, *, where: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedContainerError(f"{where}: expected non-empty string")
    return value


def _optional_str(value: Any, *, where: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedContainerError(f"{where}: expected string, got {type(value).__name__}")
    return value


def _parse_document(raw: Any, *, section_index: int, index: int, where: str) -> DocumentRecord:
    obj = _require_dict(raw, where=where)
    doc_id = _require_str(obj.get("id"), where=f"{where}.id")
    name = _optional_str(obj.get("name"), where=f"{where}.name")
    if name is None:
        name = doc_id
    document_date = _optional_str(obj.get("documentDate"), where=f"{where}.documentDate")

    selected = obj.get("selectedPages")
    selected_pages: Optional[tuple[int, ...]] = None
    if selected is not None:
        selected_pages = tuple(
            _require_int(p, where=f"{where}.selectedPages[{i}]")
            for i, p in enumerate(_require_list(selected, where=f"{where}.selectedPages"))
        )

    media_type = _optional_str(obj.get("mediaType"), where=f"{where}.mediaType") or DEFAULT_MEDIA_TYPE
    return DocumentRecord(
        section_index=section_index,
        index=index,
        id=doc_id,
        name=name,
        page_count=_require_int(obj.get("pageCount", 0), where=f"{where}.pageCount"),
        order=_require_int(obj.get("order", index), where=f"{where}.order"),
        document_date=document_date,
        date_precision=resolve_date_precision(
            document_date, _optional_str(obj.get("datePrecision"), where=f"{where}.datePrecision")
        ),
        custom_title=_optional_str(obj.get("customTitle"), where=f"{where}.customTitle"),
        selected_pages=selected_pages,
        file_name=_optional_str(obj.get("fileName"), where=f"{where}.fileName") or name,
        modified_file_name=_optional_str(obj.get("modifiedFileName"), where=f"{where}.modifiedFileName") or name,
        media_type=media_type,
        modified_media_type=_optional_str(obj.get("modifiedMediaType"), where=f"{where}.modifiedMediaType")
        or media_type,
        payload=obj,
    )


def _parse_section(raw: Any, *, section_index: int, where: str) -> SectionRecord:
    obj = _require_dict(raw, where=where)
    docs_raw = _require_list(obj.get("documents", []), where=f"{where}.documents")
    documents = tuple(
        _parse_document(d, section_index=section_index, index=i, where=f"{where}.documents[{i}]")
        for i, d in enumerate(docs_raw)
    )
    order = _require_int(obj.get("order", section_index), where=f"{where}.order")
    start_page = _require_int(obj.get("startPage", 1), where=f"{where}.startPage")
    if order < 0:
        raise MalformedContainerError(f"{where}.order: must be >= 0, got {order}")
    if start_page < 1:
        raise MalformedContainerError(f"{where}.startPage: must be a positive integer, got {start_page}")
    return SectionRecord(
        id=_require_str(obj.get("id"), where=f"{where}.id"),
        name=_optional_str(obj.get("name"), where=f"{where}.name") or "",
        add_divider=bool(obj.get("addDivider", False)),
        order=order,
        page_prefix=_optional_str(obj.get("pagePrefix"), where=f"{where}.pagePrefix") or "",
        start_page=start_page,
        documents=documents,
    )


def parse_envelope(obj: Any, *, where: str, today: Optional[str] = None) -> ContainerEnvelope:
    """Parse the shared record shape and migrate its metadata."""
    top = _require_dict(obj, where=where)
    if "metadata" not in top or "sections" not in top:
        raise MalformedContainerError(f"{where}: missing 'metadata' or 'sections'")
    sections_raw = _require_list(top["sections"], where=f"{where}.sections")
    sections = tuple(
        _parse_section(s, section_index=i, where=f"{where}.sections[{i}]") for i, s in enumerate(sections_raw)
    )

    seen: set[str] = set()
    for section in sections:
        for rec in section.documents:
            if rec.id in seen:
                raise MalformedContainerError(f"{where}: duplicate document id {rec.id!r}")
            seen.add(rec.id)

    try:
        metadata = migrate_metadata(_require_dict(top["metadata"], where=f"{where}.metadata"), today=today)
    except ValueError as e:
        if isinstance(e, MalformedContainerError):
            raise
        raise MalformedContainerError(f"{where}.metadata: {e}") from e

    saved_at = top.get("savedAt")
    version = top.get("version")
    return ContainerEnvelope(
        metadata=metadata,
        sections=sections,
        page_number_settings=page_settings_from_dict(top.get("pageNumberSettings")),
        bates_number_settings=bates_settings_from_dict(top.get("batesNumberSettings")),
        saved_at=saved_at if isinstance(saved_at, str) else None,
        version=version if isinstance(version, str) else None,
    )


# ----------------------------
# assembling
# ----------------------------


def build_document(
    record: DocumentRecord,
    content: BinaryContent,
    modified: Optional[BinaryContent],
) -> Document:
    try:
        return Document(
            id=record.id,
            name=record.name,
            page_count=record.page_count,
            order=record.order,
            content=content,
            document_date=record.document_date,
            date_precision=record.date_precision,
            custom_title=record.custom_title,
            selected_pages=record.selected_pages,
            modified_content=modified,
        )
    except (TypeError, ValueError) as e:
        raise DocumentRestoreError(
            f"failed to restore document {record.name!r}: {e}",
            document_id=record.id,
            document_name=record.name,
        ) from e


def assemble_bundle(envelope: ContainerEnvelope, documents: Mapping[str, Document]) -> Bundle:
    """Build the bundle from restored documents, keyed by document id.

    Sections and documents keep the order they were stored in.
    """
    sections = []
    for rec in envelope.sections:
        sections.append(
            Section(
                id=rec.id,
                name=rec.name,
                documents=tuple(documents[d.id] for d in rec.documents),
                add_divider=rec.add_divider,
                order=rec.order,
                page_prefix=rec.page_prefix,
                start_page=rec.start_page,
            )
        )
    return Bundle(
        metadata=envelope.metadata,
        sections=tuple(sections),
        page_number_settings=envelope.page_number_settings,
        bates_number_settings=envelope.bates_number_settings,
        saved_at=envelope.saved_at,
    )


def materialize(reader: ContainerReader) -> Bundle:
    """Restore every document synchronously (no pacing)."""
    try:
        documents = {rec.id: reader.decode_document(rec) for rec in reader.envelope.iter_documents()}
        return assemble_bundle(reader.envelope, documents)
    finally:
        reader.close()


__all__ = [
    "ContainerEnvelope",
    "ContainerReader",
    "DocumentRecord",
    "SectionRecord",
    "assemble_bundle",
    "bates_settings_from_dict",
    "bates_settings_to_dict",
    "build_document",
    "document_fields",
    "envelope_fields",
    "materialize",
    "page_settings_from_dict",
    "page_settings_to_dict",
    "parse_envelope",
    "section_fields",
]
