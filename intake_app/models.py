from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ItemStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCEEDED, ItemStatus.FAILED)


_STATUS_ORDER = {
    ItemStatus.PENDING: 0,
    ItemStatus.RUNNING: 1,
    ItemStatus.SUCCEEDED: 2,
    ItemStatus.FAILED: 2,
}


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    """Statuses only move forward, and a terminal status is final."""
    if current.is_terminal:
        return False
    return _STATUS_ORDER[target] == _STATUS_ORDER[current] + 1


def _new_item_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class QueueItem:
    path: str
    item_id: str = field(default_factory=_new_item_id)
    display_name: str = ""
    status: ItemStatus = ItemStatus.PENDING
    last_error: str | None = None

    def __post_init__(self) -> None:
        if not self.display_name:
            name = Path(self.path).name or self.path
            object.__setattr__(self, "display_name", name)


@dataclass
class BatchStats:
    succeeded: int = 0
    failed: int = 0

    def record(self, success: bool) -> None:
        if success:
            self.succeeded += 1
        else:
            self.failed += 1

    def reset(self) -> None:
        self.succeeded = 0
        self.failed = 0


@dataclass(frozen=True)
class BatchOutcome:
    succeeded: int
    failed: int

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


@dataclass
class RecognitionRecord:
    path: str
    text: str
    engine: str
    duration_seconds: float = 0.0

    @property
    def char_count(self) -> int:
        return len(self.text.strip())
