from __future__ import annotations

import unittest

from intake_app.models import ItemStatus
from intake_app.tracker import ItemTracker, ResultStore


class ItemTrackerTests(unittest.TestCase):
    def test_register_derives_display_name(self) -> None:
        tracker = ItemTracker()
        (item,) = tracker.register(["/scans/2024/invoice-01.png"])
        self.assertEqual("invoice-01.png", item.display_name)
        self.assertEqual(ItemStatus.PENDING, item.status)
        self.assertIsNone(item.last_error)
        self.assertTrue(item.item_id)

    def test_ids_are_unique(self) -> None:
        tracker = ItemTracker()
        items = tracker.register(["/a.png", "/a.png", "/b.png"])
        self.assertEqual(3, len({item.item_id for item in items}))

    def test_forward_transitions_only(self) -> None:
        tracker = ItemTracker()
        (item,) = tracker.register(["/a.png"])
        with self.assertRaises(ValueError):
            tracker.mark_succeeded(item.item_id)
        tracker.mark_running(item.item_id)
        failed = tracker.mark_failed(item.item_id, "bad image")
        self.assertEqual(ItemStatus.FAILED, failed.status)
        self.assertEqual("bad image", failed.last_error)
        with self.assertRaises(ValueError):
            tracker.mark_running(item.item_id)
        with self.assertRaises(ValueError):
            tracker.mark_succeeded(item.item_id)

    def test_snapshots_are_not_mutated(self) -> None:
        tracker = ItemTracker()
        (item,) = tracker.register(["/a.png"])
        snapshot = tracker.items()
        tracker.mark_running(item.item_id)
        self.assertEqual(ItemStatus.PENDING, snapshot[0].status)
        self.assertEqual(ItemStatus.RUNNING, tracker.get(item.item_id).status)

    def test_remove_only_terminal_items(self) -> None:
        tracker = ItemTracker()
        done, running = tracker.register(["/a.png", "/b.png"])
        tracker.mark_running(done.item_id)
        tracker.mark_succeeded(done.item_id)
        tracker.mark_running(running.item_id)

        self.assertFalse(tracker.remove(running.item_id))
        self.assertTrue(tracker.remove(done.item_id))
        self.assertFalse(tracker.remove(done.item_id))
        self.assertEqual([running.item_id], [item.item_id for item in tracker.items()])

    def test_clear_completed_leaves_active_items(self) -> None:
        tracker = ItemTracker()
        ok, bad, running, pending = tracker.register(["/a.png", "/b.png", "/c.png", "/d.png"])
        for item in (ok, bad, running):
            tracker.mark_running(item.item_id)
        tracker.mark_succeeded(ok.item_id)
        tracker.mark_failed(bad.item_id, "nope")

        self.assertEqual(2, tracker.clear_completed())
        remaining = {item.item_id: item.status for item in tracker.items()}
        self.assertEqual(
            {running.item_id: ItemStatus.RUNNING, pending.item_id: ItemStatus.PENDING},
            remaining,
        )

    def test_listener_errors_do_not_block_updates(self) -> None:
        tracker = ItemTracker()
        seen: list[ItemStatus] = []

        def broken(_item) -> None:
            raise RuntimeError("listener failed")

        tracker.add_listener(broken)
        tracker.add_listener(lambda item: seen.append(item.status))
        (item,) = tracker.register(["/a.png"])
        tracker.mark_running(item.item_id)
        self.assertEqual([ItemStatus.PENDING, ItemStatus.RUNNING], seen)
        self.assertEqual(1, tracker.count(ItemStatus.RUNNING))


class ResultStoreTests(unittest.TestCase):
    def test_oldest_results_are_dropped_past_the_limit(self) -> None:
        store = ResultStore(limit=3)
        for index in range(5):
            store.add(f"id-{index}", f"text-{index}")

        self.assertEqual(3, len(store))
        self.assertEqual(["text-2", "text-3", "text-4"], store.records())

    def test_retain_drops_results_of_cleared_items(self) -> None:
        tracker = ItemTracker()
        first, second = tracker.register(["/a.png", "/b.png"])
        store = ResultStore()
        for item in (first, second):
            tracker.mark_running(item.item_id)
            tracker.mark_succeeded(item.item_id)
            store.add(item.item_id, item.path)

        tracker.remove(first.item_id)

        self.assertEqual(1, store.retain({item.item_id for item in tracker.items()}))
        self.assertEqual(["/b.png"], store.records())

    def test_limit_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            ResultStore(limit=0)


if __name__ == "__main__":
    unittest.main()
