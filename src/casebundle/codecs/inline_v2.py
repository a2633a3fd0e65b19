"""Inline container codec ("V2", `.json`).

The whole bundle is one JSON document; every document record embeds its
bytes as base64 in `fileData` (and `modifiedFileData` for an edited variant).
There is no version field: older saves are recognised by the metadata shape
and normalized by `casebundle.core.migrate`.

Restore rules:
- a document whose original content cannot be decoded aborts the load with
  `DocumentRestoreError`
- an edited variant that cannot be decoded is dropped with a warning; the
  original stays usable
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

from casebundle.codecs._records import (
    ContainerEnvelope,
    DocumentRecord,
    build_document,
    document_fields,
    envelope_fields,
    materialize,
    parse_envelope,
    section_fields,
)
from casebundle.codecs.binary import decode_binary, encode_binary
from casebundle.codecs.detect import ContainerFormat
from casebundle.codecs.manifest import now_utc_iso
from casebundle.core.errors import DecodeError, DocumentRestoreError, EncodeError, MalformedContainerError
from casebundle.core.model import BinaryContent, Bundle, Document

logger = logging.getLogger(__name__)


def _encode_content(content: BinaryContent, doc: Document, *, what: str) -> str:
    try:
        return encode_binary(content, doc.name)
    except EncodeError as e:
        raise EncodeError(
            f"failed to save {what} of document {doc.name!r}: {e.message}",
            document_id=doc.id,
            document_name=doc.name,
        ) from e


def bundle_to_inline_dict(bundle: Bundle, *, saved_at: Optional[str] = None) -> dict[str, Any]:
    """Build the JSON-ready inline record; raises before returning if any document fails."""
    sections: list[dict[str, Any]] = []
    for section in bundle.sections:
        docs: list[dict[str, Any]] = []
        for doc in section.documents:
            rec = document_fields(doc)
            rec["fileData"] = _encode_content(doc.content, doc, what="content")
            if doc.modified_content is not None:
                rec["modifiedFileData"] = _encode_content(doc.modified_content, doc, what="edited version")
            docs.append(rec)
        sec = section_fields(section)
        sec["documents"] = docs
        sections.append(sec)

    out = envelope_fields(bundle, saved_at=saved_at or now_utc_iso())
    out["sections"] = sections
    return out


def encode_inline(bundle: Bundle, *, saved_at: Optional[str] = None) -> bytes:
    """Serialize a bundle as inline JSON bytes (UTF-8)."""
    text = json.dumps(bundle_to_inline_dict(bundle, saved_at=saved_at), indent=2)
    return (text + "\n").encode("utf-8")


class InlineReader:
    """An opened inline container; documents are decoded on demand."""

    format = ContainerFormat.INLINE

    def __init__(self, envelope: ContainerEnvelope):
        self.envelope = envelope

    def decode_document(self, record: DocumentRecord) -> Document:
        try:
            content = decode_binary(record.payload.get("fileData", ""), record.file_name, record.media_type)
        except DecodeError as e:
            raise DocumentRestoreError(
                f"failed to restore document {record.name!r}: {e.message}",
                document_id=record.id,
                document_name=record.name,
            ) from e

        modified = None
        modified_text = record.payload.get("modifiedFileData")
        if modified_text is not None:
            try:
                modified = decode_binary(modified_text, record.modified_file_name, record.modified_media_type)
            except DecodeError as e:
                logger.warning("Dropping unreadable edited version of document %r: %s", record.name, e.message)

        return build_document(record, content, modified)

    def close(self) -> None:
        return None


def parse_inline(data: Union[bytes, str]) -> Any:
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedContainerError(f"bundle file is not UTF-8 text: {e}") from e
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedContainerError(f"invalid bundle file format: {e}") from e


def open_inline(data: Union[bytes, str], *, today: Optional[str] = None) -> InlineReader:
    """Parse an inline container and migrate its metadata; no document is decoded yet."""
    return InlineReader(parse_envelope(parse_inline(data), where="bundle", today=today))


def decode_inline(data: Union[bytes, str], *, today: Optional[str] = None) -> Bundle:
    return materialize(open_inline(data, today=today))


__all__ = [
    "InlineReader",
    "bundle_to_inline_dict",
    "decode_inline",
    "encode_inline",
    "open_inline",
    "parse_inline",
]
