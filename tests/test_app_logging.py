from __future__ import annotations

import logging
import queue
import tempfile
import unittest
from pathlib import Path

from intake_app.app_logging import configure_logging, extract_log_level


class AppLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._saved_handlers = list(root.handlers)
        self._saved_level = root.level

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = self._saved_handlers
        root.setLevel(self._saved_level)

    def test_lines_reach_file_and_queue(self) -> None:
        log_queue: queue.Queue = queue.Queue()
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "logs" / "session.log"
            configure_logging(log_file, log_queue)
            logging.getLogger("intake_app.processor").warning("Attempt 1/4 failed for a.png")
            for handler in logging.getLogger().handlers:
                handler.flush()
                handler.close()

            line = log_queue.get_nowait()
            self.assertIn(" | WARNING | ", line)
            self.assertIn("Attempt 1/4 failed for a.png", line)
            self.assertIn("Attempt 1/4 failed", log_file.read_text(encoding="utf-8"))

    def test_extract_log_level(self) -> None:
        self.assertEqual("ERROR", extract_log_level("12:00:00 | ERROR | recognize-1 | boom"))
        self.assertEqual("INFO", extract_log_level("plain message"))
        self.assertEqual("INFO", extract_log_level("a | verbose | b | c"))


if __name__ == "__main__":
    unittest.main()
