from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any, Callable

from .config import MAX_RESULT_RECORDS
from .models import ItemStatus, QueueItem, can_transition

logger = logging.getLogger("intake_app.tracker")

ChangeListener = Callable[[QueueItem], None]


class ItemTracker:
    """Visible per-item state for the upload queue.

    Items are frozen dataclasses; every update swaps in a new instance under
    the lock, so readers never see a half-updated item.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, QueueItem] = {}
        self._listeners: list[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def items(self) -> list[QueueItem]:
        with self._lock:
            return list(self._items.values())

    def get(self, item_id: str) -> QueueItem | None:
        with self._lock:
            return self._items.get(item_id)

    def count(self, status: ItemStatus) -> int:
        with self._lock:
            return sum(1 for item in self._items.values() if item.status is status)

    def register(self, paths: list[str]) -> list[QueueItem]:
        created = [QueueItem(path=path) for path in paths]
        with self._lock:
            for item in created:
                self._items[item.item_id] = item
        for item in created:
            self._notify(item)
        return created

    def mark_running(self, item_id: str) -> QueueItem:
        return self._advance(item_id, ItemStatus.RUNNING)

    def mark_succeeded(self, item_id: str) -> QueueItem:
        return self._advance(item_id, ItemStatus.SUCCEEDED)

    def mark_failed(self, item_id: str, error: str) -> QueueItem:
        return self._advance(item_id, ItemStatus.FAILED, error)

    def remove(self, item_id: str) -> bool:
        with self._lock:
            item = self._items.get(item_id)
            if item is None or not item.status.is_terminal:
                return False
            del self._items[item_id]
        return True

    def clear_completed(self) -> int:
        with self._lock:
            finished = [item_id for item_id, item in self._items.items() if item.status.is_terminal]
            for item_id in finished:
                del self._items[item_id]
        return len(finished)

    def _advance(self, item_id: str, status: ItemStatus, error: str | None = None) -> QueueItem:
        with self._lock:
            current = self._items.get(item_id)
            if current is None:
                raise KeyError(f"Unknown queue item: {item_id}")
            if not can_transition(current.status, status):
                raise ValueError(
                    f"Illegal status change for {current.display_name}: "
                    f"{current.status.value} -> {status.value}"
                )
            updated = dataclasses.replace(current, status=status, last_error=error)
            self._items[item_id] = updated
        self._notify(updated)
        return updated

    def _notify(self, item: QueueItem) -> None:
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception:  # noqa: BLE001
                logger.exception("Queue item listener failed for %s", item.display_name)


class ResultStore:
    """Recognition results keyed by queue item, oldest dropped past ``limit``."""

    def __init__(self, limit: int = MAX_RESULT_RECORDS) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1.")
        self.limit = limit
        self._lock = threading.Lock()
        self._records: dict[str, Any] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def add(self, item_id: str, record: Any) -> None:
        with self._lock:
            self._records.pop(item_id, None)
            self._records[item_id] = record
            while len(self._records) > self.limit:
                del self._records[next(iter(self._records))]

    def records(self) -> list[Any]:
        with self._lock:
            return list(self._records.values())

    def retain(self, item_ids: set[str]) -> int:
        """Drop results whose item is no longer tracked; returns how many."""
        with self._lock:
            stale = [item_id for item_id in self._records if item_id not in item_ids]
            for item_id in stale:
                del self._records[item_id]
        return len(stale)
