"""File discovery and reading for the document index."""

from __future__ import annotations

import asyncio
import fnmatch
import os
import re
from pathlib import Path

from mdrules.config import DEFAULT_EXCLUDE, DEFAULT_INCLUDE, IndexerConfig
from mdrules.exceptions import DocumentLoadError


_BRACES = re.compile(r"\{([^{}]*,[^{}]*)\}")


def _expand_braces(pattern: str) -> list[str]:
    """`**/*.{ts,tsx}` -> `**/*.ts`, `**/*.tsx`."""
    match = _BRACES.search(pattern)
    if not match:
        return [pattern]
    head, tail = pattern[:match.start()], pattern[match.end():]
    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(_expand_braces(head + option + tail))
    return expanded


def _match_parts(parts: list[str], segments: list[str]) -> bool:
    if not segments:
        return not parts
    head, rest = segments[0], segments[1:]
    if head == "**":
        # zero or more whole path segments
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Match a root-relative POSIX path against a glob.

    Wildcards stay within one path segment and `**` spans any number of
    segments, including none. Dot-files are matched.
    """
    parts = rel_path.split("/")
    return any(
        _match_parts(parts, candidate.removeprefix("./").split("/"))
        for candidate in _expand_braces(pattern)
    )


def matches_any(rel_path: str, patterns: list[str]) -> bool:
    return any(matches_glob(rel_path, p) for p in patterns)


class FileSystem:
    """Finds and reads the files under a project root."""

    def __init__(
        self,
        root: str | Path,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.root = os.path.abspath(root)
        self.include_patterns = (
            list(include_patterns) if include_patterns is not None else list(DEFAULT_INCLUDE)
        )
        self.exclude_patterns = (
            list(exclude_patterns) if exclude_patterns is not None else list(DEFAULT_EXCLUDE)
        )

    @classmethod
    def from_config(cls, root: str | Path, config: IndexerConfig | None = None) -> FileSystem:
        config = config or IndexerConfig()
        return cls(root, config.include_patterns, config.exclude_patterns)

    def relative(self, path: str) -> str:
        """Root-relative POSIX path of an absolute path."""
        return Path(os.path.relpath(path, self.root)).as_posix()

    def find_files(self) -> list[str]:
        """Collect all included files, respecting exclusion patterns."""
        files = []

        for dirpath, dirnames, filenames in os.walk(self.root):
            rel_dir = self.relative(dirpath)

            # Prune excluded directories before descending
            dirnames[:] = [
                d
                for d in dirnames
                if not self._is_excluded_dir(d if rel_dir == "." else f"{rel_dir}/{d}")
            ]

            for filename in filenames:
                rel_path = filename if rel_dir == "." else f"{rel_dir}/{filename}"
                if matches_any(rel_path, self.exclude_patterns):
                    continue
                if not matches_any(rel_path, self.include_patterns):
                    continue
                files.append(os.path.join(dirpath, filename))

        return sorted(files)

    def _is_excluded_dir(self, rel_dir: str) -> bool:
        # a trailing "**" matches zero segments, so "**/node_modules/**" hits the directory itself
        return matches_any(rel_dir, self.exclude_patterns)

    async def read_file(self, path: str) -> str:
        """Read a file as UTF-8 in a worker thread."""
        try:
            return await asyncio.to_thread(_read_text, path)
        except OSError as e:
            raise DocumentLoadError(path, e.strerror or str(e)) from e
        except ValueError as e:
            # open() rejects paths with an embedded NUL
            raise DocumentLoadError(path, str(e)) from e

    async def path_exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.isfile, path)


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8", errors="replace") as f:
        return f.read()
