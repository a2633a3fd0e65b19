"""Container codec registry.

Each container format is a `ContainerCodec` record of plain functions sharing
one signature set, selected by `ContainerFormat`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from casebundle.codecs._records import ContainerReader
from casebundle.codecs.archive_v3 import decode_archive, encode_archive, open_archive
from casebundle.codecs.detect import ContainerFormat
from casebundle.codecs.inline_v2 import decode_inline, encode_inline, open_inline
from casebundle.core.model import Bundle


@dataclass(frozen=True)
class ContainerCodec:
    format: ContainerFormat
    extension: str
    encode: Callable[..., bytes]
    open: Callable[..., ContainerReader]
    decode: Callable[..., Bundle]


INLINE_CODEC = ContainerCodec(
    format=ContainerFormat.INLINE,
    extension=".json",
    encode=encode_inline,
    open=open_inline,
    decode=decode_inline,
)

ARCHIVE_CODEC = ContainerCodec(
    format=ContainerFormat.ARCHIVE,
    extension=".cbz",
    encode=encode_archive,
    open=open_archive,
    decode=decode_archive,
)

CODECS: dict[ContainerFormat, ContainerCodec] = {
    ContainerFormat.INLINE: INLINE_CODEC,
    ContainerFormat.ARCHIVE: ARCHIVE_CODEC,
}


def get_codec(fmt: ContainerFormat | str) -> ContainerCodec:
    try:
        return CODECS[ContainerFormat(fmt)]
    except ValueError as e:
        raise ValueError(f"unknown container format {fmt!r}; expected one of {[f.value for f in CODECS]}") from e


__all__ = [
    "ARCHIVE_CODEC",
    "CODECS",
    "INLINE_CODEC",
    "ContainerCodec",
    "get_codec",
]
