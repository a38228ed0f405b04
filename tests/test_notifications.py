from __future__ import annotations

import unittest

from intake_app.notifications import (
    LEVEL_ERROR,
    LEVEL_SUCCESS,
    LEVEL_WARNING,
    rejected_message,
    summary_message,
)


class NotificationTests(unittest.TestCase):
    def test_summary_variants(self) -> None:
        self.assertIsNone(summary_message(0, 0))
        self.assertEqual(LEVEL_SUCCESS, summary_message(5, 0)[0])
        self.assertEqual(LEVEL_WARNING, summary_message(2, 1)[0])
        self.assertEqual(LEVEL_ERROR, summary_message(0, 3)[0])
        self.assertIn("2 succeeded, 1 failed", summary_message(2, 1)[1])

    def test_rejected_message(self) -> None:
        self.assertIsNone(rejected_message(0))
        text = rejected_message(2)
        self.assertIn("2 unsupported", text)
        self.assertIn("PDF", text)


if __name__ == "__main__":
    unittest.main()
