"""Shared parsing utilities."""

from __future__ import annotations

import os
import unicodedata
from typing import Tuple


def read_text(file_path: str, encoding: str = "utf-8") -> str:
    """Read text file with the given encoding, replacing undecodable bytes."""
    with open(file_path, "r", encoding=encoding, errors="replace") as handle:
        return handle.read()


def read_head(file_path: str, size: int = 500, encoding: str = "utf-8") -> str:
    """Read the first ``size`` characters of a text file."""
    with open(file_path, "r", encoding=encoding, errors="replace") as handle:
        return handle.read(size)


def normalize_path_key(path: str) -> str:
    """Case-folded, NFC-normalized absolute path used as a map key."""
    normalized = os.path.normpath(os.path.abspath(path)).replace("\\", "/")
    return unicodedata.normalize("NFC", normalized).casefold()


def offset_to_line_column(content: str, offset: int) -> Tuple[int, int]:
    """Convert a character offset into a 0-based (line, column) pair."""
    line = content.count("\n", 0, offset)
    line_start = content.rfind("\n", 0, offset) + 1
    return line, offset - line_start


def file_stem(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def to_relative_posix(path: str, root: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, "/")


def is_within(path: str, root: str) -> bool:
    """Return True if path is located under root."""
    try:
        relative = os.path.relpath(os.path.abspath(path), os.path.abspath(root))
    except ValueError:
        return False
    return relative != ".." and not relative.startswith(".." + os.sep)
