"""Key-value persistence for page summaries, QA history and the mock flag.

Keys:
- ``<url>``: latest :class:`StoredPageData` for the page, overwritten wholesale
- ``qa_history_<url>``: list of :class:`HistoryEntry` dicts, append-only
- ``pagelens_mock_mode``: bool

History appends are read-modify-write with no locking, so two concurrent
appends for the same URL can lose one entry.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pagelens.errors import StorageError
from pagelens.events import EventBus, EventType
from pagelens.types import HistoryEntry, StoredPageData, SummaryResult

logger = logging.getLogger(__name__)

HISTORY_KEY_PREFIX = "qa_history_"
MOCK_MODE_KEY = "pagelens_mock_mode"


def history_key(url: str) -> str:
    return HISTORY_KEY_PREFIX + url


class KeyValueStore(ABC):
    """Async key-value store holding JSON-compatible values.

    Every write publishes ``storage.changed`` per key on the attached bus.
    """

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self.event_bus = event_bus

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the present subset of ``keys``."""

    @abstractmethod
    async def set(self, items: Dict[str, Any]) -> None:
        """Write every item."""

    @abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Delete keys; missing keys are ignored."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete everything."""

    def _notify(self, key: str, old: Any, new: Any) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(
            EventType.STORAGE_CHANGED.value,
            {"key": key, "old": old, "new": new},
            source="storage",
        )


class MemoryStore(KeyValueStore):
    """Dict-backed store; values are deep-copied in and out."""

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        super().__init__(event_bus)
        self._data: Dict[str, Any] = {}

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            old = self._data.get(key)
            self._data[key] = copy.deepcopy(value)
            self._notify(key, old, value)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            if key in self._data:
                old = self._data.pop(key)
                self._notify(key, old, None)

    async def clear(self) -> None:
        for key in list(self._data):
            old = self._data.pop(key)
            self._notify(key, old, None)


class JsonFileStore(KeyValueStore):
    """Store persisted as one JSON object on disk.

    File I/O runs in a worker thread; a lock serializes access to the file.
    """

    def __init__(self, path: Path, event_bus: Optional[EventBus] = None) -> None:
        super().__init__(event_bus)
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def _get_sync(self, keys: List[str]) -> Dict[str, Any]:
        with self._lock:
            data = self._read()
        return {k: data[k] for k in keys if k in data}

    def _update_sync(self, items: Dict[str, Any], removals: List[str], clear: bool) -> Dict[str, Any]:
        """Apply a change and return the previous values of touched keys."""
        with self._lock:
            data = self._read()
            touched = list(data) if clear else list(items) + removals
            previous = {k: data.get(k) for k in touched}
            if clear:
                data = {}
            for key in removals:
                data.pop(key, None)
            data.update(items)
            self._write(data)
        return previous

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_sync, list(keys))

    async def set(self, items: Dict[str, Any]) -> None:
        previous = await asyncio.to_thread(self._update_sync, dict(items), [], False)
        for key, value in items.items():
            self._notify(key, previous.get(key), value)

    async def remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        previous = await asyncio.to_thread(self._update_sync, {}, keys, False)
        for key in keys:
            if previous.get(key) is not None:
                self._notify(key, previous[key], None)

    async def clear(self) -> None:
        previous = await asyncio.to_thread(self._update_sync, {}, [], True)
        for key, old in previous.items():
            self._notify(key, old, None)


class PageStore:
    """Persistence adapter used by the background service and the page agent."""

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend

    async def _get(self, key: str) -> Any:
        try:
            return (await self.backend.get([key])).get(key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"read {key!r} failed: {e}") from e

    async def _set(self, key: str, value: Any) -> None:
        try:
            await self.backend.set({key: value})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"write {key!r} failed: {e}") from e

    # ── Summaries ────────────────────────────────────────────────

    async def save_summary(self, url: str, result: SummaryResult) -> StoredPageData:
        """Overwrite the stored summary for ``url``."""
        data = StoredPageData.from_result(result)
        await self._set(url, data.to_dict())
        logger.info("[Store] Saved summary for %s (%d bullets)", url, len(data.summary))
        return data

    async def store_page_data(self, url: str, data: Dict[str, Any]) -> None:
        """Store a caller-built summary record as-is."""
        await self._set(url, dict(data or {}))

    async def load_summary(self, url: str) -> Optional[StoredPageData]:
        raw = await self._get(url)
        if not isinstance(raw, dict):
            return None
        return StoredPageData.from_dict(raw)

    # ── QA history ───────────────────────────────────────────────

    async def append_history(self, url: str, entry: HistoryEntry) -> None:
        key = history_key(url)
        history = await self._get(key) or []
        history.append(entry.to_dict())
        await self._set(key, history)
        logger.debug("[Store] History for %s now has %d entries", url, len(history))

    async def get_history(self, url: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """History in append order; ``limit`` keeps the most recent entries."""
        raw = await self._get(history_key(url)) or []
        entries = [HistoryEntry.from_dict(item) for item in raw if isinstance(item, dict)]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    # ── Mock mode ────────────────────────────────────────────────

    async def get_mock_mode(self) -> bool:
        return bool(await self._get(MOCK_MODE_KEY))

    async def set_mock_mode(self, enabled: bool) -> None:
        await self._set(MOCK_MODE_KEY, bool(enabled))

    def watch_mock_mode(self, callback: Callable[[bool], None]) -> None:
        """Call ``callback`` with the new flag whenever it changes."""
        bus = self.backend.event_bus
        if bus is None:
            raise StorageError("store has no event bus to watch")

        def _on_change(event) -> None:
            if event.data.get("key") == MOCK_MODE_KEY:
                callback(bool(event.data.get("new")))

        bus.subscribe(EventType.STORAGE_CHANGED.value, _on_change)

    # ── Maintenance ──────────────────────────────────────────────

    async def clear(self) -> None:
        """Remove every stored summary, history and setting."""
        try:
            await self.backend.clear()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"clear failed: {e}") from e
        logger.info("[Store] Cleared all stored data")
