"""Archive manifest utilities (`metadata.json` of a `.cbz` container).

Imported by both codecs, so it depends on nothing but the error types.
It provides:
- sha256 hashing helpers
- the UTC timestamp used for `savedAt`
- manifest build/parse with the version gate
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any

from casebundle.core.errors import MalformedContainerError, UnsupportedVersionError

ARCHIVE_VERSION = "3.0"
ARCHIVE_FORMAT = "zip"
METADATA_ENTRY = "metadata.json"
DOCUMENTS_DIR = "documents"


def sha256_bytes(b: bytes) -> str:
    """Return hex-encoded sha256 for bytes."""
    if not isinstance(b, (bytes, bytearray)):
        raise TypeError(f"sha256_bytes: expected bytes, got {type(b).__name__}")
    return hashlib.sha256(bytes(b)).hexdigest()


def now_utc_iso() -> str:
    # Stable, explicit UTC marker.
    # Example: 2025-12-16T00:00:00Z
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_manifest(
    *,
    envelope: dict[str, Any],
    sections: list[dict[str, Any]],
    version: str = ARCHIVE_VERSION,
) -> dict[str, Any]:
    """Construct the archive metadata entry.

    `envelope` carries metadata/settings/savedAt (see `_records.envelope_fields`);
    `sections` carries section + document fields with entry references but no bytes.
    """
    if not isinstance(sections, list):
        raise TypeError("manifest: sections must be a list")
    out: dict[str, Any] = {"version": version, "format": ARCHIVE_FORMAT}
    out.update(envelope)
    out["sections"] = sections
    return out


def dump_manifest(manifest: dict[str, Any]) -> bytes:
    return (json.dumps(manifest, indent=2, sort_keys=True) + "\n").encode("utf-8")


def parse_manifest(raw: bytes) -> dict[str, Any]:
    """Parse `metadata.json` bytes and enforce the version gate."""
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedContainerError(f"{METADATA_ENTRY}: not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedContainerError(f"{METADATA_ENTRY}: expected JSON object")
    version = obj.get("version")
    if version != ARCHIVE_VERSION:
        raise UnsupportedVersionError(
            f"{METADATA_ENTRY}: unsupported bundle version {version!r} (expected {ARCHIVE_VERSION!r})",
            found=version,
            expected=ARCHIVE_VERSION,
        )
    return obj


__all__ = [
    "ARCHIVE_FORMAT",
    "ARCHIVE_VERSION",
    "DOCUMENTS_DIR",
    "METADATA_ENTRY",
    "build_manifest",
    "dump_manifest",
    "now_utc_iso",
    "parse_manifest",
    "sha256_bytes",
]
