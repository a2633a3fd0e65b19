"""Progressive reconstruction of a saved bundle.

One `ProgressiveLoader` drives one load operation through

    START -> READING_METADATA -> EXTRACTING_DOCUMENTS -> DONE

with ERROR reachable from any state. Documents are restored one at a time in
section order, then document order. After each document the loader reports
progress and yields to the event loop; every `consolidate_every` documents it
reports a consolidation step, runs a garbage collection pass and pauses for
longer so memory held by earlier documents can be reclaimed.

The pauses are the only suspension points. Any failure aborts the whole load
(no partial bundle is ever returned) and the error is annotated with the
document's name and position. A cancelled load returns nothing.
"""

from __future__ import annotations

import asyncio
import enum
import gc
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from casebundle.codecs._records import assemble_bundle
from casebundle.codecs.detect import ContainerFormat, detect_format
from casebundle.codecs.registry import get_codec
from casebundle.core.errors import BundleError
from casebundle.core.model import Bundle, Document

logger = logging.getLogger(__name__)

# Percent reserved for reading metadata; documents fill the range up to 95.
METADATA_PERCENT = 5
DOCUMENTS_PERCENT = 90


class LoadState(str, enum.Enum):
    START = "start"
    READING_METADATA = "reading_metadata"
    EXTRACTING_DOCUMENTS = "extracting_documents"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class Progress:
    """One progress notification; `processed` never decreases within a load."""

    processed: int
    total: int
    message: str
    percent: int


ProgressCallback = Callable[[Progress], None]


@dataclass(frozen=True)
class ReconstructionConfig:
    consolidate_every: int = 10
    document_pause: float = 0.05
    consolidation_pause: float = 0.2
    collect_garbage: bool = True

    def __post_init__(self) -> None:
        if self.consolidate_every < 1:
            raise ValueError("ReconstructionConfig.consolidate_every: must be >= 1")
        if self.document_pause < 0 or self.consolidation_pause < 0:
            raise ValueError("ReconstructionConfig: pauses must be >= 0")


class ProgressiveLoader:
    """Drives a single load operation; create a new loader per load."""

    def __init__(
        self,
        *,
        source_name: Optional[str] = None,
        format: Optional[ContainerFormat] = None,
        on_progress: Optional[ProgressCallback] = None,
        config: Optional[ReconstructionConfig] = None,
        today: Optional[str] = None,
        verify_hashes: bool = False,
    ):
        self.source_name = source_name
        self.format = format
        self.on_progress = on_progress
        self.config = config or ReconstructionConfig()
        self.today = today
        self.verify_hashes = verify_hashes
        self.state = LoadState.START
        self.error_kind: Optional[str] = None
        self.error_document: Optional[str] = None

    def _transition(self, state: LoadState) -> None:
        logger.debug("load %s: %s -> %s", self.source_name or "<bytes>", self.state.value, state.value)
        self.state = state

    def _emit(self, processed: int, total: int, message: str, percent: int) -> None:
        if self.on_progress is not None:
            self.on_progress(Progress(processed=processed, total=total, message=message, percent=percent))

    def _fail(self, exc: BaseException) -> None:
        self.error_kind = exc.kind if isinstance(exc, BundleError) else type(exc).__name__
        self.error_document = exc.document_name if isinstance(exc, BundleError) else None
        self._transition(LoadState.ERROR)

    async def load(self, data: bytes) -> Bundle:
        if self.state is not LoadState.START:
            raise RuntimeError(f"ProgressiveLoader already used (state={self.state.value})")
        try:
            return await self._load(data)
        except BaseException as e:
            self._fail(e)
            raise

    async def _load(self, data: bytes) -> Bundle:
        cfg = self.config
        self._transition(LoadState.READING_METADATA)
        self._emit(0, 0, "Reading bundle metadata...", 0)

        fmt = self.format or detect_format(self.source_name, data)
        open_kwargs: dict[str, Any] = {"today": self.today}
        if fmt is ContainerFormat.ARCHIVE:
            # Only archives carry content hashes.
            open_kwargs["verify_hashes"] = self.verify_hashes
        reader = get_codec(fmt).open(data, **open_kwargs)
        try:
            envelope = reader.envelope
            total = envelope.document_count
            self._emit(0, total, f"Restoring {total} documents...", METADATA_PERCENT)
            await asyncio.sleep(0)

            self._transition(LoadState.EXTRACTING_DOCUMENTS)
            documents: dict[str, Document] = {}
            for position, record in enumerate(envelope.iter_documents(), start=1):
                try:
                    documents[record.id] = reader.decode_document(record)
                except BundleError as e:
                    raise e.annotate(position=position, total=total, document_name=record.name)

                percent = METADATA_PERCENT + (position * DOCUMENTS_PERCENT) // total
                self._emit(position, total, f"Restored {record.name!r} ({position}/{total})", percent)

                if position % cfg.consolidate_every == 0:
                    self._emit(position, total, f"Consolidating memory... ({position}/{total} documents)", percent)
                    if cfg.collect_garbage:
                        gc.collect()
                    await asyncio.sleep(cfg.consolidation_pause)
                else:
                    await asyncio.sleep(cfg.document_pause)

            bundle = assemble_bundle(envelope, documents)
        finally:
            reader.close()

        self._transition(LoadState.DONE)
        self._emit(total, total, "Bundle loaded", 100)
        return bundle


async def reconstruct(
    data: bytes,
    *,
    source_name: Optional[str] = None,
    format: Optional[ContainerFormat] = None,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ReconstructionConfig] = None,
    today: Optional[str] = None,
    verify_hashes: bool = False,
) -> Bundle:
    """Load a bundle from container bytes, pacing work document by document.

    `verify_hashes` checks archive entries against their recorded sha256;
    inline containers carry no hashes and ignore it.
    """
    loader = ProgressiveLoader(
        source_name=source_name,
        format=format,
        on_progress=on_progress,
        config=config,
        today=today,
        verify_hashes=verify_hashes,
    )
    return await loader.load(data)


__all__ = [
    "LoadState",
    "Progress",
    "ProgressCallback",
    "ProgressiveLoader",
    "ReconstructionConfig",
    "reconstruct",
]
