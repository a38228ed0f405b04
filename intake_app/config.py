from __future__ import annotations

import tempfile
from pathlib import Path

APP_NAME = "Invoice Intake"
ORG_NAME = "InvoiceIntake"
SETTINGS_APP = "InvoiceIntake"

MAX_CONCURRENT = 2
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 0.5

# Claims expire on their own; they are not released on completion.
CLAIM_WINDOW_SECONDS = 5.0
# Drop events closer than this are one physical drop delivered twice.
DROP_DEBOUNCE_SECONDS = 0.1
MAX_RESULT_RECORDS = 500

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "bmp"})
DOCUMENT_EXTENSIONS = frozenset({"pdf"})
ACCEPTED_EXTENSIONS = IMAGE_EXTENSIONS | DOCUMENT_EXTENSIONS

DEFAULT_OCR_LANGUAGE = "eng"
DEFAULT_OCR_TIMEOUT_SECONDS = 120
MAX_INPUT_FILE_BYTES = 64 * 1024 * 1024  # 64 MiB

ROOT_DIR = Path(__file__).resolve().parent.parent
LOG_ROOT = ROOT_DIR / "logs"
TEMP_ROOT = Path(tempfile.gettempdir()) / "invoice_intake_jobs"
