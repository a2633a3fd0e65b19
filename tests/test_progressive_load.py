from __future__ import annotations

import asyncio
import io
import json
import zipfile

import pytest

from conftest import SAVED_AT, fast_config, make_bundle, make_document

from casebundle.bundle import progressive
from casebundle.bundle.progressive import (
    LoadState,
    Progress,
    ProgressiveLoader,
    ReconstructionConfig,
    reconstruct,
)
from casebundle.codecs.archive_v3 import encode_archive
from casebundle.codecs.detect import ContainerFormat
from casebundle.codecs.inline_v2 import encode_inline
from casebundle.core.errors import DocumentRestoreError, UnsupportedVersionError
from casebundle.core.model import Bundle, BundleMetadata, Section


@pytest.mark.parametrize("encode", [encode_inline, encode_archive])
def test_progress_is_monotonic_and_completes(encode) -> None:
    bundle = make_bundle((10, 8, 5))
    data = encode(bundle, saved_at=SAVED_AT)
    events: list[Progress] = []

    loaded = asyncio.run(reconstruct(data, on_progress=events.append, config=fast_config()))

    assert loaded == bundle
    processed = [e.processed for e in events]
    assert processed == sorted(processed)
    assert processed[-1] == 23
    percents = [e.percent for e in events]
    assert percents == sorted(percents)
    assert (events[-1].percent, events[-1].processed, events[-1].total) == (100, 23, 23)
    consolidating = [e.processed for e in events if e.message.startswith("Consolidating")]
    assert consolidating == [10, 20]
    per_document = [e.processed for e in events if e.message.startswith("Restored")]
    assert per_document == list(range(1, 24))


def test_documents_are_restored_in_section_then_document_order() -> None:
    docs_b = (make_document("b2", 1), make_document("b1", 0))
    docs_a = (make_document("a3", 2), make_document("a1", 0), make_document("a2", 1))
    bundle = Bundle(
        metadata=BundleMetadata(date="2024-01-01"),
        sections=(
            Section(id="B", name="B", documents=docs_b, order=1),
            Section(id="A", name="A", documents=docs_a, order=0),
        ),
        saved_at=SAVED_AT,
    )
    events: list[Progress] = []
    loaded = asyncio.run(
        reconstruct(encode_inline(bundle, saved_at=SAVED_AT), format=ContainerFormat.INLINE, on_progress=events.append, config=fast_config())
    )

    names = [e.message for e in events if e.message.startswith("Restored")]
    assert [n.split("'")[1] for n in names] == [
        "Document a1",
        "Document a2",
        "Document a3",
        "Document b1",
        "Document b2",
    ]
    # Stored order of sections and documents is kept.
    assert loaded == bundle


def test_empty_bundle_reports_completion() -> None:
    bundle = Bundle(metadata=BundleMetadata(date="2024-01-01"), saved_at=SAVED_AT)
    events: list[Progress] = []
    loaded = asyncio.run(reconstruct(encode_archive(bundle, saved_at=SAVED_AT), on_progress=events.append, config=fast_config()))
    assert loaded == bundle
    assert (events[-1].percent, events[-1].processed, events[-1].total) == (100, 0, 0)


def test_failure_aborts_and_is_annotated() -> None:
    bundle = make_bundle((3,))
    obj = json.loads(encode_inline(bundle, saved_at=SAVED_AT))
    obj["sections"][0]["documents"][1]["fileData"] = "!!!"
    events: list[Progress] = []
    loader = ProgressiveLoader(on_progress=events.append, config=fast_config())

    with pytest.raises(DocumentRestoreError) as ei:
        asyncio.run(loader.load(json.dumps(obj).encode("utf-8")))

    err = ei.value
    assert (err.position, err.total) == (2, 3)
    assert err.document_name == "Document s0-d1"
    assert "document 2 of 3" in str(err)
    assert loader.state is LoadState.ERROR
    assert loader.error_kind == "DocumentRestoreError"
    assert loader.error_document == "Document s0-d1"
    assert all(e.percent < 100 for e in events)


def test_version_gate_stops_before_extraction() -> None:
    data = encode_archive(make_bundle((2,)), saved_at=SAVED_AT)
    src = zipfile.ZipFile(io.BytesIO(data))
    meta = json.loads(src.read("metadata.json"))
    meta["version"] = "2.0"
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as dst:
        for name in src.namelist():
            dst.writestr(name, json.dumps(meta) if name == "metadata.json" else src.read(name))

    events: list[Progress] = []
    loader = ProgressiveLoader(on_progress=events.append, config=fast_config())
    with pytest.raises(UnsupportedVersionError):
        asyncio.run(loader.load(buf.getvalue()))
    assert loader.state is LoadState.ERROR
    assert [e.processed for e in events] == [0]


def test_loader_walks_states_and_is_single_use() -> None:
    seen: list[LoadState] = []
    loader = ProgressiveLoader(config=fast_config())
    loader.on_progress = lambda p: seen.append(loader.state)
    data = encode_archive(make_bundle((1,)), saved_at=SAVED_AT)

    asyncio.run(loader.load(data))

    assert seen[0] is LoadState.READING_METADATA
    assert LoadState.EXTRACTING_DOCUMENTS in seen
    assert seen[-1] is LoadState.DONE
    assert loader.state is LoadState.DONE
    with pytest.raises(RuntimeError):
        asyncio.run(loader.load(data))


def test_pauses_and_consolidation(monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []
    collections: list[int] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay: float, *args: object) -> None:
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(progressive.asyncio, "sleep", fake_sleep)
    monkeypatch.setattr(progressive.gc, "collect", lambda *a: collections.append(1) or 0)

    config = ReconstructionConfig(consolidate_every=3, document_pause=0.05, consolidation_pause=0.2)
    data = encode_archive(make_bundle((7,)), saved_at=SAVED_AT)
    asyncio.run(reconstruct(data, config=config))

    # One yield after metadata, then one pause per document.
    assert delays == [0, 0.05, 0.05, 0.2, 0.05, 0.05, 0.2, 0.05]
    assert len(collections) == 2


def test_cancellation_returns_nothing() -> None:
    data = encode_archive(make_bundle((6,)), saved_at=SAVED_AT)

    async def run() -> ProgressiveLoader:
        holder: dict[str, asyncio.Task] = {}

        def on_progress(p: Progress) -> None:
            if p.processed == 2:
                holder["task"].cancel()

        loader = ProgressiveLoader(on_progress=on_progress, config=fast_config())
        holder["task"] = asyncio.get_running_loop().create_task(loader.load(data))
        with pytest.raises(asyncio.CancelledError):
            await holder["task"]
        return loader

    loader = asyncio.run(run())
    assert loader.state is LoadState.ERROR
    assert loader.error_kind == "CancelledError"


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        ReconstructionConfig(consolidate_every=0)
    with pytest.raises(ValueError):
        ReconstructionConfig(document_pause=-1)

