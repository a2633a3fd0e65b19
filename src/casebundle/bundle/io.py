"""Bundle save/load on disk.

- `save_bundle()` picks the container from the target extension (`.cbz` /
  `.zip` -> archive, `.json` -> inline) unless a format is given, encodes the
  whole bundle in memory first and only then writes the file, so a failed
  save never leaves a truncated container.
- `load_bundle()` detects the container and restores it through the
  progressive loader; `loads_bundle()` does the same for in-memory bytes.
- `convert_bundle()` rewrites a bundle in another container, e.g. turning a
  large inline `.json` save into a `.cbz` that loads without exhausting memory.
"""

from __future__ import annotations

import asyncio
import os
import re
from pathlib import Path
from typing import Optional, Union

from casebundle.bundle.progressive import ProgressCallback, ReconstructionConfig, reconstruct
from casebundle.codecs.detect import ContainerFormat, format_from_name
from casebundle.codecs.registry import get_codec
from casebundle.core.model import Bundle, BundleMetadata

DEFAULT_SAVE_FORMAT = ContainerFormat.ARCHIVE


def default_save_filename(
    metadata: BundleMetadata,
    *,
    format: ContainerFormat = DEFAULT_SAVE_FORMAT,
    custom: Optional[str] = None,
) -> str:
    """Suggest a filename: `<case number>_<title>_save.<ext>`, or a cleaned custom name."""
    ext = get_codec(format).extension
    if custom:
        stem = re.sub(r"\.(json|cbz|zip)$", "", custom.strip(), flags=re.IGNORECASE)
    else:
        title = metadata.bundle_title or metadata.case_name or "bundle"
        slug = re.sub(r"\s+", "_", title.strip())
        stem = f"{metadata.case_number or 'bundle'}_{slug}_save"
    stem = re.sub(r"[\\/]", "_", stem)
    return f"{stem}{ext}"


def _write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def save_bundle(
    path: Union[str, Path],
    bundle: Bundle,
    *,
    format: Optional[ContainerFormat] = None,
    saved_at: Optional[str] = None,
) -> Path:
    """Encode `bundle` and write it to `path`; returns the written path."""
    p = Path(path)
    fmt = ContainerFormat(format) if format is not None else (format_from_name(p.name) or DEFAULT_SAVE_FORMAT)
    data = get_codec(fmt).encode(bundle, saved_at=saved_at)
    _write_bytes_atomic(p, data)
    return p


def dumps_bundle(bundle: Bundle, *, format: ContainerFormat = DEFAULT_SAVE_FORMAT, saved_at: Optional[str] = None) -> bytes:
    return get_codec(format).encode(bundle, saved_at=saved_at)


def loads_bundle(
    data: bytes,
    *,
    source_name: Optional[str] = None,
    format: Optional[ContainerFormat] = None,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ReconstructionConfig] = None,
    verify_hashes: bool = False,
) -> Bundle:
    """Restore a bundle from container bytes (blocking; runs its own event loop)."""
    return asyncio.run(
        reconstruct(
            data,
            source_name=source_name,
            format=format,
            on_progress=on_progress,
            config=config,
            verify_hashes=verify_hashes,
        )
    )


def load_bundle(
    path: Union[str, Path],
    *,
    format: Optional[ContainerFormat] = None,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ReconstructionConfig] = None,
    verify_hashes: bool = False,
) -> Bundle:
    """Read and restore a saved bundle from disk."""
    p = Path(path)
    return loads_bundle(
        p.read_bytes(),
        source_name=p.name,
        format=format,
        on_progress=on_progress,
        config=config,
        verify_hashes=verify_hashes,
    )


def convert_bundle(
    src: Union[str, Path],
    dst: Union[str, Path],
    *,
    format: Optional[ContainerFormat] = None,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ReconstructionConfig] = None,
) -> Path:
    """Load `src` and save it to `dst` (container chosen from `dst` unless given).

    The original save timestamp is kept.
    """
    bundle = load_bundle(src, on_progress=on_progress, config=config)
    return save_bundle(dst, bundle, format=format, saved_at=bundle.saved_at)


def recovered_path(src: Union[str, Path]) -> Path:
    """`<dir>/<stem>_recovered.cbz` next to `src`."""
    p = Path(src)
    return p.with_name(f"{p.stem}_recovered{get_codec(ContainerFormat.ARCHIVE).extension}")


__all__ = [
    "DEFAULT_SAVE_FORMAT",
    "convert_bundle",
    "default_save_filename",
    "dumps_bundle",
    "load_bundle",
    "loads_bundle",
    "recovered_path",
    "save_bundle",
]
