from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from .config import CLAIM_WINDOW_SECONDS

logger = logging.getLogger("intake_app.claims")


@dataclass
class ClaimResult:
    accepted: list[str] = field(default_factory=list)
    already_claimed: list[str] = field(default_factory=list)


class ClaimSet:
    """Short-lived reservations that keep a path from being submitted twice.

    A claim lasts ``window_seconds`` from the moment it is taken, whether or
    not the matching item has finished. Expired entries are purged on every
    claim attempt, under the same lock as the claim itself.
    """

    def __init__(
        self,
        window_seconds: float = CLAIM_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._expiry: dict[str, float] = {}

    def try_claim(self, paths: list[str]) -> ClaimResult:
        result = ClaimResult()
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            for path in paths:
                if path in self._expiry:
                    result.already_claimed.append(path)
                    continue
                self._expiry[path] = now + self.window_seconds
                result.accepted.append(path)
        if result.already_claimed:
            logger.info("Skipped %d path(s) already claimed.", len(result.already_claimed))
        return result

    def is_claimed(self, path: str) -> bool:
        with self._lock:
            self._purge_expired(self._clock())
            return path in self._expiry

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._expiry)

    def _purge_expired(self, now: float) -> None:
        expired = [path for path, expires_at in self._expiry.items() if expires_at <= now]
        for path in expired:
            del self._expiry[path]
