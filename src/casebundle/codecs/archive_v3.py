"""Archive container codec ("V3", `.cbz`).

A `.cbz` is a renamed ZIP file laid out as:

- `metadata.json`: `version` ("3.0"), `format` ("zip"), metadata, settings,
  `savedAt` and the section tree; each document record carries its fields, a
  `hasModified` flag and content hashes but never its bytes
- `documents/<key>_original.<ext>`: one entry per document
- `documents/<key>_modified.<ext>`: one entry per edited variant

`<key>` is derived deterministically from the document id. Content entries
are DEFLATE-compressed at a moderate level; PDFs gain little from more.

Opening an archive checks, before any document is extracted, that the
version matches and that every referenced original entry exists.
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
import zlib
from pathlib import PurePosixPath
from typing import Any, Optional

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
from casebundle.codecs.binary import read_binary, restore_binary
from casebundle.codecs.detect import ContainerFormat
from casebundle.codecs.manifest import (
    DOCUMENTS_DIR,
    METADATA_ENTRY,
    build_manifest,
    dump_manifest,
    now_utc_iso,
    parse_manifest,
    sha256_bytes,
)
from casebundle.core.errors import (
    DecodeError,
    DocumentRestoreError,
    EncodeError,
    MalformedContainerError,
    MissingMetadataEntryError,
    ReferentialIntegrityError,
)
from casebundle.core.model import BinaryContent, Bundle, Document

logger = logging.getLogger(__name__)

COMPRESSION_LEVEL = 6
ORIGINAL_SUFFIX = "original"
MODIFIED_SUFFIX = "modified"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")

_MEDIA_EXTENSIONS = {
    "application/pdf": "pdf",
    "image/png": "png",
    "image/jpeg": "jpg",
}


def entry_key(document_id: str) -> str:
    """Archive-safe key for a document id (path separators and the like become `_`)."""
    key = _UNSAFE_KEY_CHARS.sub("_", document_id)
    return key.lstrip(".") or "_"


def _extension(content: BinaryContent) -> str:
    ext = _MEDIA_EXTENSIONS.get(content.media_type)
    if ext:
        return ext
    suffix = PurePosixPath(content.name).suffix.lstrip(".").lower()
    if suffix and _UNSAFE_KEY_CHARS.search(suffix) is None:
        return suffix
    return "bin"


def entry_name(document_id: str, variant: str, content: BinaryContent) -> str:
    return f"{DOCUMENTS_DIR}/{entry_key(document_id)}_{variant}.{_extension(content)}"


def _read_content(content: BinaryContent, doc: Document, *, what: str) -> bytes:
    try:
        return read_binary(content, doc.name)
    except EncodeError as e:
        raise EncodeError(
            f"failed to save {what} of document {doc.name!r}: {e.message}",
            document_id=doc.id,
            document_name=doc.name,
        ) from e


def encode_archive(bundle: Bundle, *, saved_at: Optional[str] = None) -> bytes:
    """Serialize a bundle as `.cbz` bytes.

    All document bytes are read before the archive is written, so a failure
    never leaves a truncated container behind.
    """
    entries: list[tuple[str, bytes]] = []
    owners: dict[str, str] = {}
    sections: list[dict[str, Any]] = []

    for section in bundle.sections:
        docs: list[dict[str, Any]] = []
        for doc in section.documents:
            key = entry_key(doc.id)
            if key in owners:
                raise EncodeError(
                    f"document ids {owners[key]!r} and {doc.id!r} map to the same archive entry {key!r}",
                    document_id=doc.id,
                    document_name=doc.name,
                )
            owners[key] = doc.id

            original = _read_content(doc.content, doc, what="content")
            rec = document_fields(doc)
            rec["sha256"] = sha256_bytes(original)
            rec["hasModified"] = doc.modified_content is not None
            entries.append((entry_name(doc.id, ORIGINAL_SUFFIX, doc.content), original))

            if doc.modified_content is not None:
                modified = _read_content(doc.modified_content, doc, what="edited version")
                rec["modifiedSha256"] = sha256_bytes(modified)
                entries.append((entry_name(doc.id, MODIFIED_SUFFIX, doc.modified_content), modified))
            docs.append(rec)
        sec = section_fields(section)
        sec["documents"] = docs
        sections.append(sec)

    manifest = build_manifest(
        envelope=envelope_fields(bundle, saved_at=saved_at or now_utc_iso()),
        sections=sections,
    )

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL) as zf:
        zf.writestr(METADATA_ENTRY, dump_manifest(manifest))
        for name, data in entries:
            zf.writestr(name, data)
    return buf.getvalue()


EntryIndex = dict[tuple[str, str], str]


def index_entries(names: list[str]) -> EntryIndex:
    """Map `(key, variant)` to the entry name of every `documents/<key>_<variant>.<ext>`.

    The first entry wins when an archive holds several extensions for one key.
    """
    index: EntryIndex = {}
    prefix = f"{DOCUMENTS_DIR}/"
    for name in names:
        if not name.startswith(prefix) or "/" in name[len(prefix):]:
            continue
        base = name[len(prefix):]
        for variant in (ORIGINAL_SUFFIX, MODIFIED_SUFFIX):
            marker = f"_{variant}."
            cut = base.rfind(marker)
            # Extensions are a single segment.
            if cut >= 0 and "." not in base[cut + len(marker):]:
                index.setdefault((base[:cut], variant), name)
    return index


def _find_entry(index: EntryIndex, document_id: str, variant: str) -> Optional[str]:
    return index.get((entry_key(document_id), variant))


class ArchiveReader:
    """An opened `.cbz` container; documents are extracted on demand."""

    format = ContainerFormat.ARCHIVE

    def __init__(
        self,
        zf: zipfile.ZipFile,
        envelope: ContainerEnvelope,
        originals: dict[str, str],
        *,
        entries: Optional[EntryIndex] = None,
        verify_hashes: bool = False,
    ):
        self._zf = zf
        self.envelope = envelope
        self._originals = originals
        self._entries = entries if entries is not None else index_entries(zf.namelist())
        self.verify_hashes = verify_hashes

    def _read_entry(self, name: str, record: DocumentRecord, *, hash_key: str) -> bytes:
        try:
            data = self._zf.read(name)
        except (zipfile.BadZipFile, zlib.error, OSError, KeyError) as e:
            raise DecodeError(f"{name}: cannot extract entry: {e}", document_id=record.id, document_name=record.name) from e
        expected = record.payload.get(hash_key)
        if self.verify_hashes and isinstance(expected, str) and sha256_bytes(data) != expected:
            raise DecodeError(
                f"{name}: sha256 mismatch for document {record.name!r}",
                document_id=record.id,
                document_name=record.name,
            )
        return data

    def decode_document(self, record: DocumentRecord) -> Document:
        name = self._originals[record.id]
        try:
            content = restore_binary(self._read_entry(name, record, hash_key="sha256"), record.file_name, record.media_type)
        except DecodeError as e:
            raise DocumentRestoreError(
                f"failed to restore document {record.name!r}: {e.message}",
                document_id=record.id,
                document_name=record.name,
            ) from e

        modified = None
        if record.payload.get("hasModified"):
            modified_name = _find_entry(self._entries, record.id, MODIFIED_SUFFIX)
            if modified_name is None:
                logger.warning("Edited version of document %r is missing from the archive; using the original", record.name)
            else:
                try:
                    modified = restore_binary(
                        self._read_entry(modified_name, record, hash_key="modifiedSha256"),
                        record.modified_file_name,
                        record.modified_media_type,
                    )
                except DecodeError as e:
                    logger.warning("Dropping unreadable edited version of document %r: %s", record.name, e.message)

        return build_document(record, content, modified)

    def close(self) -> None:
        self._zf.close()

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def open_archive(data: bytes, *, verify_hashes: bool = False, today: Optional[str] = None) -> ArchiveReader:
    """Open a `.cbz`, read its metadata entry and check referential integrity."""
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, OSError) as e:
        raise MalformedContainerError(f"not a valid bundle archive: {e}") from e

    try:
        names = zf.namelist()
        if METADATA_ENTRY not in names:
            raise MissingMetadataEntryError(f"bundle archive has no {METADATA_ENTRY} entry")
        try:
            raw = zf.read(METADATA_ENTRY)
        except (zipfile.BadZipFile, zlib.error, OSError) as e:
            raise MalformedContainerError(f"{METADATA_ENTRY}: cannot extract entry: {e}") from e

        envelope = parse_envelope(parse_manifest(raw), where=METADATA_ENTRY, today=today)
        entries = index_entries(names)

        originals: dict[str, str] = {}
        for record in envelope.iter_documents():
            found = _find_entry(entries, record.id, ORIGINAL_SUFFIX)
            if found is None:
                raise ReferentialIntegrityError(
                    f"document {record.name!r} (id {record.id!r}) has no "
                    f"{DOCUMENTS_DIR}/{entry_key(record.id)}_{ORIGINAL_SUFFIX}.* entry in the archive",
                    document_id=record.id,
                    document_name=record.name,
                )
            originals[record.id] = found
    except Exception:
        zf.close()
        raise

    return ArchiveReader(zf, envelope, originals, entries=entries, verify_hashes=verify_hashes)


def decode_archive(data: bytes, *, verify_hashes: bool = False, today: Optional[str] = None) -> Bundle:
    return materialize(open_archive(data, verify_hashes=verify_hashes, today=today))


__all__ = [
    "COMPRESSION_LEVEL",
    "ArchiveReader",
    "decode_archive",
    "encode_archive",
    "entry_key",
    "entry_name",
    "index_entries",
    "open_archive",
]
