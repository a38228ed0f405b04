from __future__ import annotations

import unittest

from intake_app.claims import ClaimSet
from intake_app.intake import SOURCE_DIALOG, SOURCE_DROP, DropIntake
from intake_app.processor import BatchProcessor

WAIT_SECONDS = 5.0


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class DropIntakeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.rejected: list[int] = []
        self.summaries: list[tuple[int, int]] = []
        self.processor = BatchProcessor(
            lambda path: {"path": path},
            on_summary=lambda ok, bad: self.summaries.append((ok, bad)),
        )
        self.addCleanup(self.processor.shutdown)
        self.intake = DropIntake(
            self.processor,
            ClaimSet(window_seconds=5.0, clock=self.clock),
            on_rejected=self.rejected.append,
            debounce_seconds=0.1,
            clock=self.clock,
        )

    def test_invalid_paths_are_counted_once(self) -> None:
        items = self.intake.submit(["/in/a.png", "/in/notes.txt", "/in/b.PDF"])

        self.assertEqual(["/in/a.png", "/in/b.PDF"], [item.path for item in items])
        self.assertEqual([1], self.rejected)
        self.assertTrue(self.processor.wait_idle(WAIT_SECONDS))
        self.assertEqual([(2, 0)], self.summaries)

    def test_no_rejected_notification_when_all_valid(self) -> None:
        self.intake.submit(["/in/a.png"])
        self.assertEqual([], self.rejected)

    def test_same_path_within_claim_window_is_dropped(self) -> None:
        first = self.intake.submit(["/in/a.png"])
        self.clock.now += 1.0
        second = self.intake.submit(["/in/a.png"])

        self.assertEqual(1, len(first))
        self.assertEqual([], second)
        self.assertEqual(1, len(self.processor.tracker.items()))

    def test_same_path_after_claim_window_is_queued_again(self) -> None:
        self.intake.submit(["/in/a.png"])
        self.clock.now += 5.0
        again = self.intake.submit(["/in/a.png"])

        self.assertEqual(1, len(again))
        self.assertEqual(2, len(self.processor.tracker.items()))

    def test_repeated_drop_event_is_discarded(self) -> None:
        first = self.intake.submit(["/in/a.png"], source=SOURCE_DROP)
        self.clock.now += 0.05
        repeat = self.intake.submit(["/in/b.png", "/in/c.txt"], source=SOURCE_DROP)

        self.assertEqual(1, len(first))
        self.assertEqual([], repeat)
        self.assertEqual([], self.rejected)

        self.clock.now += 0.2
        later = self.intake.submit(["/in/b.png"], source=SOURCE_DROP)
        self.assertEqual(1, len(later))

    def test_dialog_picks_are_not_debounced(self) -> None:
        self.intake.submit(["/in/a.png"], source=SOURCE_DROP)
        picked = self.intake.submit(["/in/b.png"], source=SOURCE_DIALOG)
        self.assertEqual(1, len(picked))

    def test_only_rejected_paths_creates_nothing(self) -> None:
        items = self.intake.submit(["/in/a.doc", "/in/b"])
        self.assertEqual([], items)
        self.assertEqual([2], self.rejected)
        self.assertFalse(self.processor.is_draining)


if __name__ == "__main__":
    unittest.main()
