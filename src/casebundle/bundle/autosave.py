"""Auto-save slot: one overwrite-in-place record for crash recovery.

The slot is a single JSON file (`<directory>/<key>.json`) holding the inline
container payload plus `timestamp` (epoch milliseconds) and `version`. Its
lifecycle:

- written every `AUTO_SAVE_INTERVAL` seconds and `AUTO_SAVE_DEBOUNCE` seconds
  after the last edit (`AutoSaveScheduler`)
- read once at startup to offer recovery (`AutoSaveSlot.read` / `restore`)
- cleared after a successful manual save or when the user dismisses recovery

A slot written by an incompatible version, or one that is structurally
invalid, is cleared on read rather than offered for recovery.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from casebundle.bundle.progressive import ProgressCallback, ReconstructionConfig, reconstruct
from casebundle.codecs._records import ContainerEnvelope, parse_envelope
from casebundle.codecs.detect import ContainerFormat
from casebundle.codecs.inline_v2 import bundle_to_inline_dict
from casebundle.core.errors import BundleError, MalformedContainerError
from casebundle.core.model import Bundle

logger = logging.getLogger(__name__)

AUTO_SAVE_KEY = "court-bundle-autosave"
AUTO_SAVE_VERSION = "2.0"
AUTO_SAVE_INTERVAL = 30.0
AUTO_SAVE_DEBOUNCE = 2.0
AUTOSAVE_DIR_ENV = "CASEBUNDLE_AUTOSAVE_DIR"


def default_autosave_dir() -> Path:
    env = os.environ.get(AUTOSAVE_DIR_ENV)
    if env:
        return Path(env)
    return Path.home() / ".casebundle"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AutoSaveRecord:
    """An auto-save entry read without restoring any document."""

    envelope: ContainerEnvelope
    timestamp: int
    version: str

    @property
    def has_content(self) -> bool:
        m = self.envelope.metadata
        has_metadata = bool(m.bundle_title or m.case_name or m.case_number or m.court)
        return has_metadata or self.envelope.document_count > 0


class AutoSaveSlot:
    def __init__(self, directory: Union[str, Path, None] = None, *, key: str = AUTO_SAVE_KEY):
        self.directory = Path(directory) if directory is not None else default_autosave_dir()
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def write(self, bundle: Bundle, *, timestamp: Optional[int] = None) -> None:
        """Overwrite the slot with `bundle`; raises `EncodeError` without touching the old record."""
        payload = bundle_to_inline_dict(bundle)
        payload["timestamp"] = timestamp if timestamp is not None else _now_ms()
        payload["version"] = AUTO_SAVE_VERSION
        text = json.dumps(payload) + "\n"

        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, self.path)
        logger.info("Auto-saved bundle to %s", self.path)

    def _read_payload(self) -> Optional[dict[str, Any]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Auto-save data is not valid JSON (%s); clearing", e)
            self.clear()
            return None
        if not isinstance(obj, dict):
            logger.warning("Auto-save data has an invalid structure; clearing")
            self.clear()
            return None
        return obj

    def read(self) -> Optional[AutoSaveRecord]:
        """Return the stored record, or None if there is nothing usable to recover."""
        obj = self._read_payload()
        if obj is None:
            return None

        version = obj.get("version")
        if version != AUTO_SAVE_VERSION:
            logger.warning("Incompatible auto-save version %r found; clearing", version)
            self.clear()
            return None

        timestamp = obj.get("timestamp")
        if not obj.get("metadata") or not isinstance(obj.get("sections"), list) or not isinstance(timestamp, int):
            logger.warning("Auto-save data has an invalid structure; clearing")
            self.clear()
            return None

        try:
            envelope = parse_envelope(obj, where="autosave")
        except MalformedContainerError as e:
            logger.warning("Auto-save data is malformed (%s); clearing", e)
            self.clear()
            return None
        return AutoSaveRecord(envelope=envelope, timestamp=timestamp, version=version)

    def has_recoverable(self) -> bool:
        record = self.read()
        return record is not None and record.has_content

    async def restore(
        self,
        *,
        on_progress: Optional[ProgressCallback] = None,
        config: Optional[ReconstructionConfig] = None,
    ) -> Optional[Bundle]:
        """Restore the auto-saved bundle progressively; None if the slot is empty or unusable."""
        if self.read() is None:
            return None
        data = self.path.read_bytes()
        return await reconstruct(
            data,
            source_name=self.path.name,
            format=ContainerFormat.INLINE,
            on_progress=on_progress,
            config=config,
        )

    def clear(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()
            logger.info("Auto-save cleared")


class AutoSaveScheduler:
    """Writes `snapshot()` to the slot periodically and shortly after edits.

    Must be started from a running event loop. Write failures are logged and
    never propagate into the editor; the previous record stays in place.
    """

    def __init__(
        self,
        slot: AutoSaveSlot,
        snapshot: Callable[[], Optional[Bundle]],
        *,
        interval: float = AUTO_SAVE_INTERVAL,
        debounce: float = AUTO_SAVE_DEBOUNCE,
    ):
        self.slot = slot
        self.snapshot = snapshot
        self.interval = interval
        self.debounce = debounce
        self.last_saved: Optional[int] = None
        self._periodic: Optional[asyncio.Task[None]] = None
        self._pending: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        if self._periodic is None:
            self._periodic = asyncio.get_running_loop().create_task(self._run_periodic())

    def save_now(self) -> bool:
        timestamp = _now_ms()
        try:
            bundle = self.snapshot()
            if bundle is None:
                return False
            self.slot.write(bundle, timestamp=timestamp)
        except (BundleError, OSError) as e:
            logger.error("Failed to auto-save: %s", e)
            return False
        except Exception:
            logger.exception("Failed to auto-save")
            return False
        self.last_saved = timestamp
        return True

    def notify_change(self) -> None:
        """Schedule a save `debounce` seconds from now, replacing any pending one."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._debounced_save())

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self.debounce)
        self.save_now()

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.save_now()

    async def stop(self) -> None:
        tasks = [t for t in (self._periodic, self._pending) if t is not None]
        for t in tasks:
            t.cancel()
        for t in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await t
        self._periodic = None
        self._pending = None


def format_autosave_age(timestamp: int, *, now: Optional[int] = None) -> str:
    """Human-readable age of an auto-save timestamp (epoch ms)."""
    now = now if now is not None else _now_ms()
    diff_ms = now - timestamp
    mins = diff_ms // 60000
    hours = diff_ms // 3600000
    days = diff_ms // 86400000

    if mins < 1:
        return "just now"
    if mins < 60:
        return f"{mins} minute{'s' if mins != 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    if days < 7:
        return f"{days} day{'s' if days != 1 else ''} ago"
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M")


__all__ = [
    "AUTO_SAVE_DEBOUNCE",
    "AUTO_SAVE_INTERVAL",
    "AUTO_SAVE_KEY",
    "AUTO_SAVE_VERSION",
    "AUTOSAVE_DIR_ENV",
    "AutoSaveRecord",
    "AutoSaveScheduler",
    "AutoSaveSlot",
    "default_autosave_dir",
    "format_autosave_age",
]
