"""Render context items as tagged blocks for an agent.

    <doc description="Coding style" type="always" file="docs/style.md">
    ...content, with embedded links replaced by...
    <inline_doc description="Setup" file="docs/setup.md" lines="3-10">
    ...excerpt...
    </inline_doc>
    </doc>

Non-markdown files are wrapped in <file> instead of <doc>.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from mdrules.context.models import ContextItem
from mdrules.graph.builder import DocumentIndex
from mdrules.parser.models import DocumentLink, DocumentNode, EmbedKind

logger = logging.getLogger("mdrules.formatter")


def _escape(value: str) -> str:
    return value.replace('"', "&quot;")


def _attrs(**attrs: str | None) -> str:
    return "".join(f' {k}="{_escape(v)}"' for k, v in attrs.items() if v)


class ContextFormatter:
    """Turns ordered context items into the text handed to the agent."""

    def __init__(self, root: str | Path, index: DocumentIndex) -> None:
        self.root = os.path.abspath(root)
        self.index = index

    def relative(self, path: str) -> str:
        return Path(os.path.relpath(path, self.root)).as_posix()

    def format_context(self, items: list[ContextItem]) -> str:
        return "\n\n".join(self.format_item(item) for item in items)

    def format_item(self, item: ContextItem) -> str:
        node = item.node
        tag = "doc" if node.is_markdown else "file"
        description = (item.linked_via_anchor if item.is_related else None) or node.meta.description
        open_tag = "<{}{}>".format(
            tag,
            _attrs(
                description=description,
                type=item.classification.value,
                file=self.relative(node.path),
            ),
        )
        return f"{open_tag}\n{self._inline_embeds(node)}\n</{tag}>"

    def _inline_embeds(self, node: DocumentNode) -> str:
        """Replace each embedded link occurrence with its target's content."""
        content = node.content
        cursor = 0
        for link in node.links:
            if not link.is_embedded:
                continue
            needle = f"[{link.anchor_text}]({link.raw_target})"
            at = content.find(needle, cursor)
            if at < 0:
                continue

            block = self._inline_block(node, link)
            if block is None:
                cursor = at + len(needle)
                continue
            content = content[:at] + block + content[at + len(needle):]
            cursor = at + len(block)
        return content

    def _inline_block(self, source: DocumentNode, link: DocumentLink) -> str | None:
        target = self.index.get(link.target_path)
        if target is None or target.is_error:
            logger.warning(
                f"Cannot inline '{link.anchor_text}' in {source.path}: "
                f"target {link.target_path} is missing or failed to load"
            )
            return None

        excerpt, lines = slice_lines(target.content, link)
        open_tag = "<inline_doc{}>".format(
            _attrs(
                description=link.anchor_text,
                file=self.relative(target.path),
                lines=lines,
            )
        )
        return f"{open_tag}\n{excerpt}\n</inline_doc>"


def slice_lines(content: str, link: DocumentLink) -> tuple[str, str | None]:
    """Cut the excerpt a link asks for.

    Ranges are 1-based and inclusive; a start of 0 means line 1 and "end"
    means the last line. Returns (excerpt, lines attribute).
    """
    if link.embed is not EmbedKind.RANGE or link.line_range is None:
        return content, None

    line_range = link.line_range
    lines = content.split("\n")
    start = max(line_range.start, 1)
    end = len(lines) if line_range.end == "end" else min(line_range.end, len(lines))
    return "\n".join(lines[start - 1:end]), f"{start}-{line_range.end}"
