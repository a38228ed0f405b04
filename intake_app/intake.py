from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from .claims import ClaimSet
from .config import DROP_DEBOUNCE_SECONDS
from .models import QueueItem
from .processor import BatchProcessor
from .validation import partition_acceptable

logger = logging.getLogger("intake_app.intake")

SOURCE_DROP = "drop"
SOURCE_DIALOG = "dialog"


class DropIntake:
    """Turns raw drop/pick events into validated, de-duplicated batches."""

    def __init__(
        self,
        processor: BatchProcessor,
        claims: ClaimSet | None = None,
        *,
        on_rejected: Callable[[int], None] | None = None,
        debounce_seconds: float = DROP_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.processor = processor
        self.claims = claims or ClaimSet()
        self.debounce_seconds = debounce_seconds
        self._on_rejected = on_rejected
        self._clock = clock
        self._lock = threading.Lock()
        self._last_drop_at: float | None = None

    def submit(self, raw_paths: list[str], source: str = SOURCE_DROP) -> list[QueueItem]:
        if source == SOURCE_DROP and self._is_repeat_drop():
            logger.info("Ignored repeated drop event (%d path(s)).", len(raw_paths))
            return []

        accepted, rejected = partition_acceptable(list(raw_paths))
        if rejected:
            logger.warning("Rejected %d unsupported file(s) from %s.", len(rejected), source)
            self._report_rejected(len(rejected))

        claimed = self.claims.try_claim(accepted)
        if not claimed.accepted:
            return []

        items = self.processor.submit(claimed.accepted)
        logger.info("Queued %d file(s) from %s.", len(items), source)
        return items

    def _is_repeat_drop(self) -> bool:
        with self._lock:
            now = self._clock()
            last = self._last_drop_at
            if last is not None and now - last < self.debounce_seconds:
                return True
            self._last_drop_at = now
            return False

    def _report_rejected(self, count: int) -> None:
        if self._on_rejected is None:
            return
        try:
            self._on_rejected(count)
        except Exception:  # noqa: BLE001
            logger.exception("Rejected-count sink failed.")
