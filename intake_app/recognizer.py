from __future__ import annotations

import logging
import shutil
import subprocess
import time
import uuid
from pathlib import Path

from .config import (
    DEFAULT_OCR_LANGUAGE,
    DEFAULT_OCR_TIMEOUT_SECONDS,
    DOCUMENT_EXTENSIONS,
    IMAGE_EXTENSIONS,
    MAX_INPUT_FILE_BYTES,
    TEMP_ROOT,
)
from .models import RecognitionRecord
from .validation import file_extension

logger = logging.getLogger("intake_app.recognizer")


class RecognitionError(RuntimeError):
    pass


def _safe_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0


def _cleanup_temp_dir(temp_dir: Path) -> None:
    try:
        resolved = temp_dir.resolve()
        temp_root = TEMP_ROOT.resolve()
        if resolved == temp_root or temp_root not in resolved.parents:
            return
    except OSError:
        return
    shutil.rmtree(temp_dir, ignore_errors=True)


def build_image_command(tesseract_bin: str, image_path: Path, language: str) -> list[str]:
    return [tesseract_bin, str(image_path), "stdout", "-l", language]


def build_pdf_command(
    ocrmypdf_bin: str,
    input_pdf: Path,
    output_pdf: Path,
    sidecar: Path,
    language: str,
) -> list[str]:
    return [
        ocrmypdf_bin,
        "--jobs",
        "1",
        "--skip-text",
        "--rotate-pages",
        "--deskew",
        "-l",
        language,
        "--sidecar",
        str(sidecar),
        str(input_pdf),
        str(output_pdf),
    ]


class TesseractRecognizer:
    """Local recognition backend: tesseract for images, ocrmypdf for PDFs."""

    def __init__(
        self,
        language: str = DEFAULT_OCR_LANGUAGE,
        timeout_seconds: float = DEFAULT_OCR_TIMEOUT_SECONDS,
    ) -> None:
        self.language = language or DEFAULT_OCR_LANGUAGE
        self.timeout_seconds = timeout_seconds

    def __call__(self, path: str) -> RecognitionRecord:
        source = Path(path)
        if not source.is_file():
            raise RecognitionError(f"File not found: {source}")
        input_size = _safe_size(source)
        if input_size > MAX_INPUT_FILE_BYTES:
            raise RecognitionError(
                f"Input file is too large ({input_size} bytes). "
                f"Limit is {MAX_INPUT_FILE_BYTES} bytes."
            )

        extension = file_extension(path)
        start = time.time()
        if extension in IMAGE_EXTENSIONS:
            text = self._recognize_image(source)
            engine = "tesseract"
        elif extension in DOCUMENT_EXTENSIONS:
            text = self._recognize_pdf(source)
            engine = "ocrmypdf"
        else:
            raise RecognitionError(f"Unsupported file type: .{extension or '?'}")
        duration = time.time() - start
        logger.info("%s finished %s in %.2f seconds.", engine, source.name, duration)
        return RecognitionRecord(path=str(source), text=text, engine=engine, duration_seconds=duration)

    def _recognize_image(self, image_path: Path) -> str:
        tesseract_bin = shutil.which("tesseract")
        if not tesseract_bin:
            raise RecognitionError("tesseract executable is not available in PATH.")
        completed = self._run(build_image_command(tesseract_bin, image_path, self.language))
        return completed.stdout

    def _recognize_pdf(self, input_pdf: Path) -> str:
        ocrmypdf_bin = shutil.which("ocrmypdf")
        if not ocrmypdf_bin:
            raise RecognitionError("ocrmypdf executable is not available in PATH.")
        temp_dir = TEMP_ROOT / uuid.uuid4().hex[:12]
        temp_dir.mkdir(parents=True, exist_ok=True)
        sidecar = temp_dir / "text.txt"
        try:
            self._run(
                build_pdf_command(
                    ocrmypdf_bin,
                    input_pdf,
                    temp_dir / "output.pdf",
                    sidecar,
                    self.language,
                )
            )
            try:
                return sidecar.read_text(encoding="utf-8")
            except OSError as exc:
                raise RecognitionError(f"ocrmypdf produced no text output: {exc}") from exc
        finally:
            _cleanup_temp_dir(temp_dir)

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise RecognitionError(f"{Path(cmd[0]).name} executable is not available in PATH.") from exc
        except subprocess.TimeoutExpired as exc:
            raise RecognitionError(
                f"{Path(cmd[0]).name} timed out after {self.timeout_seconds:g} seconds."
            ) from exc
        except subprocess.CalledProcessError as exc:
            details = (exc.stderr or exc.stdout or "").strip()
            name = Path(cmd[0]).name
            if details:
                raise RecognitionError(f"{name} failed with exit code {exc.returncode}: {details}") from exc
            raise RecognitionError(f"{name} failed with exit code {exc.returncode}.") from exc
