from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable

from .config import MAX_CONCURRENT, MAX_RETRIES, RETRY_DELAY_SECONDS
from .models import BatchOutcome, BatchStats, ItemStatus, QueueItem
from .retry import error_message, is_retryable
from .tracker import ItemTracker

logger = logging.getLogger("intake_app.processor")

Recognize = Callable[[str], Any]
RecordSink = Callable[[QueueItem, Any], None]
RefreshSink = Callable[[], None]
SummarySink = Callable[[int, int], None]


class BatchProcessor:
    """Runs recognition for queued items, at most ``max_concurrent`` at a time.

    A fixed set of long-lived worker threads pulls from one shared pending
    queue. A worker keeps its slot for the whole life of an item, including
    the pauses between retries. When the queue is empty and no worker holds
    an item, the drain cycle ends: the counters are snapshotted and reset,
    and the refresh and summary sinks fire once.
    """

    def __init__(
        self,
        recognize: Recognize,
        tracker: ItemTracker | None = None,
        *,
        on_record: RecordSink | None = None,
        on_refresh: RefreshSink | None = None,
        on_summary: SummarySink | None = None,
        max_concurrent: int = MAX_CONCURRENT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        classify: Callable[[BaseException], bool] = is_retryable,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1.")
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative.")
        self.tracker = tracker or ItemTracker()
        self.max_concurrent = max_concurrent
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._recognize = recognize
        self._classify = classify
        self._sleep = sleep
        self._on_record = on_record
        self._on_refresh = on_refresh
        self._on_summary = on_summary

        self._cond = threading.Condition()
        self._pending: deque[QueueItem] = deque()
        self._active = 0
        self._stats = BatchStats()
        self._draining = False
        self._announcing = 0
        self._drain_cycles = 0
        self._closed = False
        self._queued_ids: set[str] = set()
        self._workers: list[threading.Thread] = []

    @property
    def is_draining(self) -> bool:
        with self._cond:
            return self._draining

    @property
    def active_count(self) -> int:
        with self._cond:
            return self._active

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._pending)

    @property
    def drain_cycles(self) -> int:
        with self._cond:
            return self._drain_cycles

    def submit(self, paths: list[str]) -> list[QueueItem]:
        if not paths:
            return []
        # Condition wraps an RLock, so enqueue can take it again.
        with self._cond:
            if self._closed:
                raise RuntimeError("Batch processor has been shut down.")
            items = self.tracker.register(paths)
            self.enqueue(items)
        return items

    def enqueue(self, items: list[QueueItem]) -> list[QueueItem]:
        """Queue registered Pending items; returns the ones actually added.

        Items already queued or in flight are skipped.
        """
        if not items:
            return []
        with self._cond:
            if self._closed:
                raise RuntimeError("Batch processor has been shut down.")
            added: list[QueueItem] = []
            for item in items:
                if item.item_id in self._queued_ids:
                    logger.warning("Skipped %s: already queued.", item.display_name)
                    continue
                current = self.tracker.get(item.item_id)
                if current is None:
                    raise KeyError(f"Queue item {item.item_id} is not registered with the tracker.")
                if current.status is not ItemStatus.PENDING:
                    raise ValueError(f"Queue item {item.display_name} is already {current.status.value}.")
                self._queued_ids.add(item.item_id)
                added.append(current)
            if not added:
                return []
            self._pending.extend(added)
            if not self._draining:
                self._draining = True
                self._stats.reset()
                self._drain_cycles += 1
                logger.info(
                    "Drain cycle %d started with %d item(s).",
                    self._drain_cycles,
                    len(added),
                )
            else:
                logger.info("Appended %d item(s) to the running drain cycle.", len(added))
            self._ensure_workers()
            self._cond.notify_all()
        return added

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the current drain cycle has finished and announced."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._closed or (not self._draining and self._announcing == 0),
                timeout=timeout,
            )

    def shutdown(self) -> int:
        """Stop dispatching. In-flight results are dropped without notification.

        Returns the number of queued items that were never dispatched; they
        stay Pending in the tracker.
        """
        with self._cond:
            if self._closed:
                return 0
            self._closed = True
            abandoned = len(self._pending)
            in_flight = self._active
            self._pending.clear()
            self._cond.notify_all()
        logger.info(
            "Batch processor shut down (%d in flight abandoned, %d never started).",
            in_flight,
            abandoned,
        )
        return abandoned

    def _ensure_workers(self) -> None:
        if self._workers:
            return
        for index in range(self.max_concurrent):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"recognize-{index + 1}",
                daemon=True,
            )
            self._workers.append(worker)
            worker.start()

    def _worker_loop(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._closed or bool(self._pending))
                if self._closed:
                    return
                item = self._pending.popleft()
                self._active += 1
            try:
                self.tracker.mark_running(item.item_id)
            except (KeyError, ValueError):
                logger.exception("Could not start %s; dropping it from the queue.", item.display_name)
                self._release(item, None)
                continue
            success = False
            error = ""
            try:
                success, error = self._process(item)
            finally:
                self._finish(item, success, error)

    def _process(self, item: QueueItem) -> tuple[bool, str]:
        total_attempts = self.max_retries + 1
        attempt = 0
        while True:
            attempt += 1
            try:
                record = self._recognize(item.path)
            except Exception as exc:  # noqa: BLE001
                message = error_message(exc)
                if attempt < total_attempts and self._should_retry(exc):
                    logger.warning(
                        "Attempt %d/%d failed for %s: %s. Retrying in %.2fs.",
                        attempt,
                        total_attempts,
                        item.display_name,
                        message,
                        self.retry_delay,
                    )
                    self._sleep(self.retry_delay)
                    if self._is_closed():
                        return False, message
                    continue
                logger.error(
                    "Recognition failed for %s after %d attempt(s): %s",
                    item.display_name,
                    attempt,
                    message,
                )
                return False, message

            logger.info("Recognized %s (attempt %d).", item.display_name, attempt)
            if self._on_record is not None:
                self._call_sink(self._on_record, item, record)
            return True, ""

    def _should_retry(self, exc: Exception) -> bool:
        try:
            return bool(self._classify(exc))
        except Exception:  # noqa: BLE001
            logger.exception("Retry classifier raised; treating error as terminal.")
            return False

    def _finish(self, item: QueueItem, success: bool, error: str) -> None:
        if self._is_closed():
            logger.debug("Discarding result for %s after shutdown.", item.display_name)
            return
        try:
            if success:
                self.tracker.mark_succeeded(item.item_id)
            else:
                self.tracker.mark_failed(item.item_id, error or "Unknown recognition error")
        except (KeyError, ValueError):
            logger.exception("Could not record the result for %s.", item.display_name)
        self._release(item, success)

    def _release(self, item: QueueItem, success: bool | None) -> None:
        """Free the item's slot; ``success`` is None when it never ran."""
        outcome: BatchOutcome | None = None
        with self._cond:
            self._active -= 1
            self._queued_ids.discard(item.item_id)
            if success is not None:
                self._stats.record(success)
            if self._draining and not self._pending and self._active == 0:
                outcome = BatchOutcome(self._stats.succeeded, self._stats.failed)
                self._stats.reset()
                self._draining = False
                self._announcing += 1
            self._cond.notify_all()

        if outcome is None:
            return
        try:
            self._announce(outcome)
        finally:
            with self._cond:
                self._announcing -= 1
                self._cond.notify_all()

    def _announce(self, outcome: BatchOutcome) -> None:
        logger.info(
            "Drain cycle finished: %d succeeded, %d failed.",
            outcome.succeeded,
            outcome.failed,
        )
        if outcome.total == 0:
            return
        if self._on_refresh is not None:
            self._call_sink(self._on_refresh)
        if self._on_summary is not None:
            self._call_sink(self._on_summary, outcome.succeeded, outcome.failed)

    def _is_closed(self) -> bool:
        with self._cond:
            return self._closed

    @staticmethod
    def _call_sink(sink: Callable[..., Any], *args: Any) -> None:
        try:
            sink(*args)
        except Exception:  # noqa: BLE001
            logger.exception("Notification sink %r failed.", sink)
