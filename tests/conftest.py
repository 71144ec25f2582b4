"""Shared test fixtures for mdrules."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from pathlib import Path

import pytest

from mdrules.graph.builder import DocumentGraphBuilder, DocumentIndex, build_index
from mdrules.parser.core import FileSystem


def write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


@pytest.fixture(autouse=True)
def _reset_logging():
    """The CLI reconfigures logging globally; undo it after each test."""
    yield
    logging.disable(logging.NOTSET)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)


@pytest.fixture
def docs_project(tmp_path: Path) -> Path:
    """Create a temporary project with linked markdown docs."""
    write(tmp_path, ".cursor/rules/global.md", """---
description: Global rules
alwaysApply: true
---

# Global rules

Follow the [Style guide](../../docs/style.md?md-link=true) everywhere.
""")

    write(tmp_path, "docs/style.md", """# Style

Use two spaces for indentation.
""")

    write(tmp_path, "docs/typescript.md", """---
globs: "**/*.ts, **/*.tsx"
---

# TypeScript

See [Testing](./testing.md?md-link=true) before writing tests.

[Snippet](./snippet.md?md-embed=2-3)
""")

    write(tmp_path, "docs/testing.md", """---
description: Testing conventions
---

Write a test for every bug fix.
""")

    write(tmp_path, "docs/snippet.md", "Line 1\nLine 2\nLine 3\nLine 4\n")

    write(tmp_path, "docs/database.md", """---
description: Database conventions
---

# Database

The [Schema](./schema.md?md-link=true) lists every table.
Old notes live in [Archive](./archive/missing.md?md-link=true).
""")

    write(tmp_path, "docs/schema.md", """# Schema

Back to [Database](./database.md?md-link=1).
""")

    write(tmp_path, "docs/broken.md", """---
description: [unclosed
---

Broken front matter.
""")

    write(tmp_path, "node_modules/pkg/readme.md", "# Vendored\n")
    write(tmp_path, "src/main.ts", "console.log('hello');\n")

    return tmp_path


class CountingFileSystem(FileSystem):
    """FileSystem that records every read and yields to the loop first."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.reads: Counter[str] = Counter()

    async def read_file(self, path: str) -> str:
        self.reads[path] += 1
        await asyncio.sleep(0)
        return await super().read_file(path)


@pytest.fixture
def counting_fs(docs_project: Path) -> CountingFileSystem:
    return CountingFileSystem(docs_project)


@pytest.fixture
def builder(docs_project: Path, counting_fs: CountingFileSystem) -> DocumentGraphBuilder:
    return DocumentGraphBuilder(docs_project, counting_fs)


@pytest.fixture
def doc_index(docs_project: Path) -> DocumentIndex:
    return build_index(docs_project)
