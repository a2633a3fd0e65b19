"""Core: data model, metadata migration, errors and the document inventory.

This package is intentionally standalone and must not import CLI/codecs/bundle
to avoid circular dependencies.
"""

from __future__ import annotations

from .errors import (
    BundleError,
    DecodeError,
    DocumentRestoreError,
    EncodeError,
    MalformedContainerError,
    MissingMetadataEntryError,
    ReferentialIntegrityError,
    UnknownFormatError,
    UnsupportedVersionError,
)
from .migrate import infer_date_precision, metadata_to_dict, migrate_metadata
from .model import (
    BatesNumberSettings,
    BinaryContent,
    Bundle,
    BundleMetadata,
    Document,
    PageNumberSettings,
    Party,
    PartyRole,
    Section,
)

__all__ = [
    "BatesNumberSettings",
    "BinaryContent",
    "Bundle",
    "BundleError",
    "BundleMetadata",
    "DecodeError",
    "Document",
    "DocumentRestoreError",
    "EncodeError",
    "MalformedContainerError",
    "MissingMetadataEntryError",
    "PageNumberSettings",
    "Party",
    "PartyRole",
    "ReferentialIntegrityError",
    "Section",
    "UnknownFormatError",
    "UnsupportedVersionError",
    "infer_date_precision",
    "metadata_to_dict",
    "migrate_metadata",
]
