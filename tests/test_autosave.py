from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path

import pytest

from conftest import fast_config, make_bundle, make_document

from casebundle.bundle.autosave import (
    AUTO_SAVE_VERSION,
    AUTOSAVE_DIR_ENV,
    AutoSaveScheduler,
    AutoSaveSlot,
    default_autosave_dir,
    format_autosave_age,
)
from casebundle.bundle.progressive import Progress
from casebundle.core.errors import EncodeError
from casebundle.core.model import BinaryContent, Bundle, BundleMetadata, Section

MINUTE = 60_000
HOUR = 60 * MINUTE
DAY = 24 * HOUR


def test_write_then_read(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path)
    slot.write(make_bundle((2, 1)), timestamp=1_700_000_000_000)

    obj = json.loads(slot.path.read_text(encoding="utf-8"))
    assert obj["version"] == AUTO_SAVE_VERSION
    assert obj["timestamp"] == 1_700_000_000_000

    record = slot.read()
    assert record is not None
    assert record.timestamp == 1_700_000_000_000
    assert record.envelope.document_count == 3
    assert record.has_content
    assert slot.has_recoverable()


def test_empty_slot(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path / "missing")
    assert slot.read() is None
    assert not slot.has_recoverable()
    assert asyncio.run(slot.restore()) is None
    slot.clear()


def test_blank_bundle_is_not_recoverable(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path)
    slot.write(Bundle(metadata=BundleMetadata(date="2024-01-01")))
    assert slot.read() is not None
    assert not slot.has_recoverable()


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        json.dumps([1, 2]),
        json.dumps({"version": "1.0", "timestamp": 1, "metadata": {"court": "x"}, "sections": []}),
        json.dumps({"version": AUTO_SAVE_VERSION, "timestamp": 1, "metadata": {}, "sections": []}),
        json.dumps({"version": AUTO_SAVE_VERSION, "metadata": {"court": "x"}, "sections": []}),
        json.dumps({"version": AUTO_SAVE_VERSION, "timestamp": 1, "metadata": {"court": "x"}, "sections": [{"id": 3}]}),
    ],
)
def test_unusable_slot_is_cleared(tmp_path: Path, payload: str, caplog: pytest.LogCaptureFixture) -> None:
    slot = AutoSaveSlot(tmp_path)
    slot.path.write_text(payload, encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        assert slot.read() is None
    assert not slot.path.exists()
    assert "clearing" in caplog.text


def test_restore_reconstructs_documents(tmp_path: Path) -> None:
    bundle = make_bundle((2, 3))
    slot = AutoSaveSlot(tmp_path)
    slot.write(bundle)
    events: list[Progress] = []

    restored = asyncio.run(slot.restore(on_progress=events.append, config=fast_config()))

    assert restored is not None
    assert restored.sections == bundle.sections
    assert restored.metadata == bundle.metadata
    assert events[-1].processed == 5
    assert events[-1].percent == 100
    # Restoring does not consume the slot.
    assert slot.path.exists()


def test_failed_write_keeps_previous_record(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path)
    slot.write(make_bundle((1,)), timestamp=1)
    before = slot.path.read_bytes()

    broken = make_document("bad", content=BinaryContent(name="bad.pdf", data=b""))
    with pytest.raises(EncodeError):
        slot.write(Bundle(sections=(Section(id="s", name="S", documents=(broken,)),)))
    assert slot.path.read_bytes() == before


def test_clear(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path)
    slot.write(make_bundle((1,)))
    slot.clear()
    assert not slot.path.exists()
    assert slot.read() is None


def test_default_dir_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv(AUTOSAVE_DIR_ENV, str(tmp_path))
    assert default_autosave_dir() == tmp_path
    assert AutoSaveSlot().path == tmp_path / "court-bundle-autosave.json"


def test_format_autosave_age() -> None:
    now = 1_700_000_000_000
    assert format_autosave_age(now - 30_000, now=now) == "just now"
    assert format_autosave_age(now - MINUTE, now=now) == "1 minute ago"
    assert format_autosave_age(now - 5 * MINUTE, now=now) == "5 minutes ago"
    assert format_autosave_age(now - HOUR, now=now) == "1 hour ago"
    assert format_autosave_age(now - 23 * HOUR, now=now) == "23 hours ago"
    assert format_autosave_age(now - 2 * DAY, now=now) == "2 days ago"
    old = now - 30 * DAY
    assert format_autosave_age(old, now=now) == datetime.fromtimestamp(old / 1000).strftime("%Y-%m-%d %H:%M")


def test_scheduler_debounces_edits(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path)
    snapshots: list[int] = []
    bundle = make_bundle((1,))

    def snapshot() -> Bundle:
        snapshots.append(1)
        return bundle

    async def run() -> AutoSaveScheduler:
        scheduler = AutoSaveScheduler(slot, snapshot, interval=60.0, debounce=0.01)
        scheduler.start()
        for _ in range(5):
            scheduler.notify_change()
        await asyncio.sleep(0.1)
        await scheduler.stop()
        return scheduler

    scheduler = asyncio.run(run())
    assert len(snapshots) == 1
    assert scheduler.last_saved is not None
    assert slot.read() is not None


def test_scheduler_saves_periodically(tmp_path: Path) -> None:
    slot = AutoSaveSlot(tmp_path)
    calls: list[int] = []

    def snapshot() -> Bundle:
        calls.append(1)
        return make_bundle((1,))

    async def run() -> None:
        scheduler = AutoSaveScheduler(slot, snapshot, interval=0.01, debounce=10.0)
        scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

    asyncio.run(run())
    assert len(calls) >= 2
    assert slot.has_recoverable()


def test_scheduler_logs_failed_save(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    slot = AutoSaveSlot(tmp_path)
    broken = make_document("bad", content=BinaryContent(name="bad.pdf", data=b""))
    scheduler = AutoSaveScheduler(slot, lambda: Bundle(sections=(Section(id="s", name="S", documents=(broken,)),)))

    with caplog.at_level(logging.ERROR):
        assert scheduler.save_now() is False
    assert "Failed to auto-save" in caplog.text
    assert scheduler.last_saved is None

    assert AutoSaveScheduler(slot, lambda: None).save_now() is False


def test_scheduler_survives_failing_snapshot(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    slot = AutoSaveSlot(tmp_path)
    calls: list[int] = []

    def snapshot() -> Bundle:
        calls.append(1)
        raise RuntimeError("editor state unavailable")

    async def run() -> bool:
        scheduler = AutoSaveScheduler(slot, snapshot, interval=0.01, debounce=0.01)
        scheduler.start()
        scheduler.notify_change()
        await asyncio.sleep(0.1)
        alive = scheduler._periodic is not None and not scheduler._periodic.done()
        await scheduler.stop()
        return alive

    with caplog.at_level(logging.ERROR):
        alive = asyncio.run(run())

    assert alive
    assert len(calls) >= 3
    assert "Failed to auto-save" in caplog.text
    assert "editor state unavailable" in caplog.text
    assert not slot.path.exists()


def test_unserializable_metadata_is_logged_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    slot = AutoSaveSlot(tmp_path)
    bundle = Bundle(metadata=BundleMetadata(date="2024-01-01", extra={"handle": object()}))
    scheduler = AutoSaveScheduler(slot, lambda: bundle)

    with caplog.at_level(logging.ERROR):
        assert scheduler.save_now() is False
    assert "Failed to auto-save" in caplog.text
    assert not slot.path.exists()
