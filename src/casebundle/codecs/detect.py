"""Container format detection.

The file extension decides when it is on the allowlist (`.cbz`/`.zip` ->
archive, `.json` -> inline). Otherwise the first two bytes decide: the ZIP
local-file-header signature `PK` means archive, anything else is read as
inline JSON, whose loader reports a clearer error if it is not. An allowlisted
extension wins even over `PK` content, so `bundle.json` is always inline.
"""

from __future__ import annotations

import enum
from pathlib import PurePath
from typing import BinaryIO, Optional, Union

from casebundle.core.errors import UnknownFormatError

ZIP_SIGNATURE = b"PK"


class ContainerFormat(str, enum.Enum):
    INLINE = "inline"
    ARCHIVE = "archive"


EXTENSION_FORMATS = {
    ".cbz": ContainerFormat.ARCHIVE,
    ".zip": ContainerFormat.ARCHIVE,
    ".json": ContainerFormat.INLINE,
}


def format_from_name(source_name: Optional[str]) -> Optional[ContainerFormat]:
    if not source_name:
        return None
    return EXTENSION_FORMATS.get(PurePath(source_name).suffix.lower())


def _read_leading(leading: Union[bytes, bytearray, memoryview, BinaryIO, None]) -> bytes:
    if leading is None:
        raise UnknownFormatError("cannot detect format: no readable bytes and no recognised extension")
    if isinstance(leading, (bytes, bytearray, memoryview)):
        return bytes(leading[:2])
    try:
        pos = leading.tell() if leading.seekable() else None
        head = leading.read(2)
        if pos is not None:
            leading.seek(pos)
    except (OSError, ValueError) as e:
        raise UnknownFormatError(f"cannot detect format: source is unreadable: {e}") from e
    if not isinstance(head, (bytes, bytearray)):
        raise UnknownFormatError("cannot detect format: source did not return bytes")
    return bytes(head)


def detect_format(
    source_name: Optional[str],
    leading: Union[bytes, bytearray, memoryview, BinaryIO, None] = None,
) -> ContainerFormat:
    """Classify a candidate input as archive or inline."""
    by_name = format_from_name(source_name)
    if by_name is not None:
        return by_name
    head = _read_leading(leading)
    if head.startswith(ZIP_SIGNATURE):
        return ContainerFormat.ARCHIVE
    return ContainerFormat.INLINE


__all__ = [
    "EXTENSION_FORMATS",
    "ZIP_SIGNATURE",
    "ContainerFormat",
    "detect_format",
    "format_from_name",
]
