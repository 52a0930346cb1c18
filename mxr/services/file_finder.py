"""
Glob-based file discovery with excluded-directory pruning.

Patterns use ``**`` (any directory depth), ``*``, ``?`` and ``{a,b}`` alternatives and are
matched against POSIX paths relative to the search base. A pattern may match starting at
any directory boundary, so ``mapper/*.xml`` finds ``src/main/resources/mapper/A.xml``.
"""
from __future__ import annotations

import asyncio
import os
import re
from functools import lru_cache
from typing import Iterable, Iterator, List, Optional

from mxr.config import DEFAULT_EXCLUDE_DIRS


def _split_alternatives(body: str) -> List[str]:
    parts, depth, current = [], 0, []
    for char in body:
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current.append(char)
    parts.append("".join(current))
    return parts


def _translate(pattern: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        elif pattern[i] == "{":
            depth, end = 0, -1
            for j in range(i, len(pattern)):
                if pattern[j] == "{":
                    depth += 1
                elif pattern[j] == "}":
                    depth -= 1
                    if depth == 0:
                        end = j
                        break
            if end < 0:
                out.append(re.escape(pattern[i:]))
                break
            alternatives = _split_alternatives(pattern[i + 1:end])
            out.append("(?:" + "|".join(_translate(alt) for alt in alternatives) + ")")
            i = end + 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return "".join(out)


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a glob into a regex matched against relative POSIX paths."""
    body = pattern.replace("\\", "/").lstrip("/")
    if body.startswith("./"):
        body = body[2:]
    return re.compile("(?:.*/)?" + _translate(body))


def matches(pattern: str, relative_path: str) -> bool:
    return glob_to_regex(pattern).fullmatch(relative_path.replace("\\", "/")) is not None


class FileFinder:
    """Walk a project tree deterministically, skipping build/output/vcs directories."""

    def __init__(self, root: str, exclude_dirs: Optional[Iterable[str]] = None):
        self.root = os.path.abspath(root)
        self.exclude_dirs = frozenset(exclude_dirs if exclude_dirs is not None else DEFAULT_EXCLUDE_DIRS)

    def walk(self, base: Optional[str] = None) -> Iterator[str]:
        """
        Yield absolute file paths under ``base`` (default: the project root).

        Files of a directory come before its sub-directories, both in name order.
        Excluded directory names are pruned below ``base``; ``base`` itself is always walked.
        """
        start = os.path.abspath(base) if base else self.root
        stack = [start]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as entries:
                    ordered = sorted(entries, key=lambda entry: entry.name)
            except OSError:
                continue
            sub_dirs = []
            for entry in ordered:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name not in self.exclude_dirs:
                            sub_dirs.append(entry.path)
                    elif entry.is_file(follow_symlinks=False):
                        yield entry.path
                except OSError:
                    continue
            stack.extend(reversed(sub_dirs))

    def find(self, pattern: str, limit: Optional[int] = None, base: Optional[str] = None) -> List[str]:
        """
        Return files matching ``pattern``, at most ``limit`` of them.

        Args:
            pattern: glob pattern relative to ``base``
            limit: maximum number of results (None for no limit)
            base: directory to search (default: project root)
        """
        if limit is not None and limit <= 0:
            return []
        start = os.path.abspath(base) if base else self.root
        regex = glob_to_regex(pattern)
        results: List[str] = []
        for path in self.walk(start):
            relative = os.path.relpath(path, start).replace(os.sep, "/")
            if regex.fullmatch(relative):
                results.append(path)
                if limit is not None and len(results) >= limit:
                    break
        return results

    async def find_async(self, pattern: str, limit: Optional[int] = None,
                         base: Optional[str] = None) -> List[str]:
        return await asyncio.to_thread(self.find, pattern, limit, base)


__all__ = ["FileFinder", "glob_to_regex", "matches"]
