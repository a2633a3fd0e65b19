"""Binary codec: document bytes <-> transport-safe base64 text."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any

from casebundle.core.errors import DecodeError, EncodeError
from casebundle.core.model import DEFAULT_MEDIA_TYPE, BinaryContent

# "data:application/pdf;base64," as produced by browser data URLs.
_DATA_URL_PREFIX = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)


def read_binary(content: Any, logical_name: str | None = None) -> bytes:
    """Read the bytes of a `BinaryContent`, failing with `EncodeError` on anything unusable."""
    name = logical_name or getattr(content, "name", None) or "<unnamed>"
    if content is None:
        raise EncodeError(f"{name}: no binary content to encode", document_name=logical_name)
    if not isinstance(content, BinaryContent):
        raise EncodeError(
            f"{name}: expected BinaryContent, got {type(content).__name__}",
            document_name=logical_name,
        )
    try:
        data = content.read()
    except Exception as e:
        raise EncodeError(f"{name}: failed to read content: {e}", document_name=logical_name) from e
    if not data:
        raise EncodeError(f"{name}: content is empty", document_name=logical_name)
    if not isinstance(data, (bytes, bytearray)):
        raise EncodeError(f"{name}: read returned {type(data).__name__}, not bytes", document_name=logical_name)
    return bytes(data)


def encode_binary(content: Any, logical_name: str | None = None) -> str:
    """Encode a `BinaryContent` as plain base64 text (no data-URL prefix)."""
    return base64.b64encode(read_binary(content, logical_name)).decode("ascii")


def strip_transport_prefix(text: str) -> str:
    return _DATA_URL_PREFIX.sub("", text, count=1)


def restore_binary(data: bytes, logical_name: str, media_type: str = DEFAULT_MEDIA_TYPE) -> BinaryContent:
    """Wrap raw bytes as content, rejecting zero-length results."""
    if not data:
        raise DecodeError(f"{logical_name}: restored content is empty", document_name=logical_name)
    return BinaryContent(name=logical_name, data=data, media_type=media_type or DEFAULT_MEDIA_TYPE)


def decode_binary(text: str, logical_name: str, media_type: str = DEFAULT_MEDIA_TYPE) -> BinaryContent:
    """Decode base64 text (optionally data-URL prefixed) back into `BinaryContent`."""
    if not isinstance(text, str) or not text.strip():
        raise DecodeError(f"{logical_name}: empty encoded data", document_name=logical_name)
    payload = strip_transport_prefix(text.strip())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"{logical_name}: invalid base64 data: {e}", document_name=logical_name) from e
    return restore_binary(data, logical_name, media_type)


__all__ = [
    "decode_binary",
    "encode_binary",
    "read_binary",
    "restore_binary",
    "strip_transport_prefix",
]
