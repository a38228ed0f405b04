from __future__ import annotations

import unittest

from intake_app.validation import file_extension, is_acceptable, partition_acceptable


class ValidationTests(unittest.TestCase):
    def test_accepts_images_and_pdf(self) -> None:
        for path in ["/in/a.jpg", "/in/b.jpeg", "/in/c.png", "/in/d.bmp", "/in/e.pdf"]:
            self.assertTrue(is_acceptable(path), path)

    def test_extension_is_case_insensitive(self) -> None:
        self.assertTrue(is_acceptable("/in/SCAN.PDF"))
        self.assertTrue(is_acceptable("/in/photo.JpEg"))
        self.assertEqual("png", file_extension("/in/x.PNG"))

    def test_rejects_missing_or_unknown_extension(self) -> None:
        self.assertFalse(is_acceptable("/in/README"))
        self.assertFalse(is_acceptable("/in/.hidden"))
        self.assertFalse(is_acceptable("/in/notes.txt"))
        self.assertFalse(is_acceptable("/in/archive.pdf.zip"))
        self.assertFalse(is_acceptable(""))

    def test_partition_keeps_order(self) -> None:
        accepted, rejected = partition_acceptable(["/a.png", "/b.txt", "/c.pdf", ""])
        self.assertEqual(["/a.png", "/c.pdf"], accepted)
        self.assertEqual(["/b.txt", ""], rejected)


if __name__ == "__main__":
    unittest.main()
