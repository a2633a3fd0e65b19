"""casebundle: save and reload court bundles of PDF documents.

Bundles are persisted as inline JSON (`.json`) or as a ZIP archive (`.cbz`),
loaded progressively, and protected by a crash-recovery auto-save slot.
"""

from __future__ import annotations

from casebundle.bundle import load_bundle, save_bundle
from casebundle.core import Bundle, migrate_metadata

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Bundle",
    "load_bundle",
    "migrate_metadata",
    "save_bundle",
]
