from __future__ import annotations

from .config import ACCEPTED_EXTENSIONS

LEVEL_SUCCESS = "success"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"


def supported_formats_label() -> str:
    return ", ".join(sorted(ext.upper() for ext in ACCEPTED_EXTENSIONS))


def summary_message(succeeded: int, failed: int) -> tuple[str, str] | None:
    if succeeded <= 0 and failed <= 0:
        return None
    if failed <= 0:
        return LEVEL_SUCCESS, f"Recognized {succeeded} file(s)."
    if succeeded <= 0:
        return LEVEL_ERROR, f"Recognition failed for {failed} file(s)."
    return LEVEL_WARNING, f"Recognition finished: {succeeded} succeeded, {failed} failed."


def rejected_message(count: int) -> str | None:
    if count <= 0:
        return None
    return f"Skipped {count} unsupported file(s). Supported formats: {supported_formats_label()}."
