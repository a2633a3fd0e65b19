"""Error kinds raised by the bundle persistence layer.

Every error is terminal to the save/load call that raised it; nothing here is
retried. Errors that concern a specific document carry its id and display name
so callers can render an actionable message, and the progressive loader adds
the document's position before re-raising.
"""

from __future__ import annotations

from typing import Optional


class BundleError(ValueError):
    """Base class for all bundle save/load failures."""

    def __init__(
        self,
        message: str,
        *,
        document_id: Optional[str] = None,
        document_name: Optional[str] = None,
        position: Optional[int] = None,
        total: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.document_id = document_id
        self.document_name = document_name
        self.position = position
        self.total = total

    @property
    def kind(self) -> str:
        return type(self).__name__

    def annotate(self, *, position: int, total: int, document_name: Optional[str] = None) -> "BundleError":
        """Attach the document position (1-based) within the load, in place."""
        self.position = position
        self.total = total
        if self.document_name is None and document_name is not None:
            self.document_name = document_name
        return self

    def __str__(self) -> str:
        if self.position is not None and self.total is not None:
            return f"{self.message} (document {self.position} of {self.total})"
        return self.message


class EncodeError(BundleError):
    """A document's binary content could not be read or encoded."""


class DecodeError(BundleError):
    """Encoded text or an archive entry could not be turned back into content."""


class UnknownFormatError(BundleError):
    """The container format could not be determined because the source is unreadable."""


class MalformedContainerError(BundleError):
    """The container could not be parsed structurally."""


class MissingMetadataEntryError(BundleError):
    """An archive container has no metadata entry."""


class UnsupportedVersionError(BundleError):
    """An archive container declares a version this reader does not handle."""

    def __init__(self, message: str, *, found: object = None, expected: str = ""):
        super().__init__(message)
        self.found = found
        self.expected = expected


class ReferentialIntegrityError(BundleError):
    """Archive metadata references a document whose content entry is missing."""


class DocumentRestoreError(BundleError):
    """A document's original content could not be restored."""


__all__ = [
    "BundleError",
    "DecodeError",
    "DocumentRestoreError",
    "EncodeError",
    "MalformedContainerError",
    "MissingMetadataEntryError",
    "ReferentialIntegrityError",
    "UnknownFormatError",
    "UnsupportedVersionError",
]
