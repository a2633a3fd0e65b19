"""Container codecs for saving and loading bundles.

- `inline_v2`: single JSON document with base64-embedded document bytes (`.json`)
- `archive_v3`: ZIP archive with a metadata entry plus one entry per document (`.cbz`)
- `binary`: the base64 leaf codec both build on
- `detect`: container format detection by extension and leading bytes
"""

from __future__ import annotations

from .detect import ContainerFormat, detect_format
from .registry import ARCHIVE_CODEC, INLINE_CODEC, ContainerCodec, get_codec

__all__ = [
    "ARCHIVE_CODEC",
    "INLINE_CODEC",
    "ContainerCodec",
    "ContainerFormat",
    "detect_format",
    "get_codec",
]
