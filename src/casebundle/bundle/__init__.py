"""Bundle persistence: save/load on disk, progressive loading and auto-save.

- `io`: save/load/convert a bundle file (`.json` inline or `.cbz` archive)
- `progressive`: paced, document-by-document reconstruction with progress
- `autosave`: the single crash-recovery slot and its scheduler
"""

from __future__ import annotations

from .autosave import AutoSaveScheduler, AutoSaveSlot, format_autosave_age
from .io import convert_bundle, default_save_filename, load_bundle, loads_bundle, save_bundle
from .progressive import LoadState, Progress, ProgressiveLoader, ReconstructionConfig, reconstruct

__all__ = [
    "AutoSaveScheduler",
    "AutoSaveSlot",
    "LoadState",
    "Progress",
    "ProgressiveLoader",
    "ReconstructionConfig",
    "convert_bundle",
    "default_save_filename",
    "format_autosave_age",
    "load_bundle",
    "loads_bundle",
    "reconstruct",
    "save_bundle",
]
