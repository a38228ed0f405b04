from __future__ import annotations

from pathlib import PurePath

from .config import ACCEPTED_EXTENSIONS


def file_extension(path: str) -> str:
    suffix = PurePath(path).suffix
    return suffix[1:].lower() if suffix else ""


def is_acceptable(path: str) -> bool:
    extension = file_extension(path)
    if not extension:
        return False
    return extension in ACCEPTED_EXTENSIONS


def partition_acceptable(paths: list[str]) -> tuple[list[str], list[str]]:
    accepted: list[str] = []
    rejected: list[str] = []
    for path in paths:
        if path and is_acceptable(path):
            accepted.append(path)
        else:
            rejected.append(path)
    return accepted, rejected
