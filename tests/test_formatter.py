"""Tests for rendering context items."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from mdrules.context.engine import ContextAssembler
from mdrules.context.formatter import ContextFormatter
from mdrules.context.models import Classification, ContextItem
from mdrules.graph.builder import DocumentIndex
from mdrules.parser.links import extract_links
from mdrules.parser.models import DocumentMeta, DocumentNode, LoadFailure

ROOT = "/project"
SNIPPET = "/project/docs/snippet.md"


def make_doc(path: str, content: str, **meta) -> DocumentNode:
    return DocumentNode(
        path=path,
        content=content,
        meta=DocumentMeta(**meta),
        links=extract_links(path, content),
    )


@pytest.fixture
def index() -> DocumentIndex:
    index = DocumentIndex(ROOT)
    index.add(make_doc(SNIPPET, "Line 1\nLine 2\nLine 3\nLine 4"))
    index.add(DocumentNode(path="/project/docs/gone.md", error=LoadFailure(reason="not found")))
    return index


def render(index: DocumentIndex, content: str, classification=Classification.AUTO, **meta) -> str:
    node = make_doc("/project/docs/main.md", content, **meta)
    index.add(node)
    item = ContextItem(node=node, classification=classification)
    return ContextFormatter(ROOT, index).format_item(item)


class TestFormatItem:
    def test_plain_doc(self, index: DocumentIndex):
        result = render(index, "Hello", description="Main doc")
        assert result == '<doc description="Main doc" type="auto" file="docs/main.md">\nHello\n</doc>'

    def test_description_omitted_when_empty(self, index: DocumentIndex):
        assert render(index, "Hello") == '<doc type="auto" file="docs/main.md">\nHello\n</doc>'

    def test_quotes_are_escaped(self, index: DocumentIndex):
        result = render(index, "x", description='Say "hi"', classification=Classification.ALWAYS)
        assert result.startswith('<doc description="Say &quot;hi&quot;" type="always"')

    def test_related_item_uses_anchor_text(self, index: DocumentIndex):
        node = make_doc("/project/docs/other.md", "Other", description="Own description")
        item = ContextItem(
            node=node,
            classification=Classification.RELATED,
            linked_via_anchor="Other doc",
            linked_from_path="/project/docs/main.md",
        )
        result = ContextFormatter(ROOT, index).format_item(item)
        assert result.startswith('<doc description="Other doc" type="related" file="docs/other.md">')

    def test_non_markdown_file(self, index: DocumentIndex):
        node = DocumentNode(path="/project/src/app.ts", content="run()", is_markdown=False)
        item = ContextItem(node=node, classification=Classification.MANUAL)
        result = ContextFormatter(ROOT, index).format_item(item)
        assert result == '<file type="manual" file="src/app.ts">\nrun()\n</file>'


class TestInlineEmbeds:
    def test_whole_embed_replaces_link(self, index: DocumentIndex):
        result = render(index, "Before\n[Snippet](./snippet.md?md-embed=true)\nAfter")
        assert result == (
            '<doc type="auto" file="docs/main.md">\n'
            "Before\n"
            '<inline_doc description="Snippet" file="docs/snippet.md">\n'
            "Line 1\nLine 2\nLine 3\nLine 4\n"
            "</inline_doc>\n"
            "After\n"
            "</doc>"
        )

    @pytest.mark.parametrize(
        "value,lines,excerpt",
        [
            ("2-3", "2-3", "Line 2\nLine 3"),
            ("0-1", "1-1", "Line 1"),
            ("-1", "1-1", "Line 1"),
            ("2-", "2-end", "Line 2\nLine 3\nLine 4"),
            ("3-end", "3-end", "Line 3\nLine 4"),
            ("3-10", "3-10", "Line 3\nLine 4"),
        ],
    )
    def test_range_embed(self, index: DocumentIndex, value: str, lines: str, excerpt: str):
        result = render(index, f"[Part](./snippet.md?md-embed={value})")
        assert f'<inline_doc description="Part" file="docs/snippet.md" lines="{lines}">' in result
        assert f'lines="{lines}">\n{excerpt}\n</inline_doc>' in result

    def test_each_occurrence_replaced_in_order(self, index: DocumentIndex):
        result = render(
            index,
            "[A](./snippet.md?md-embed=1-1) and [B](./snippet.md?md-embed=4-4)",
        )
        first = result.index('description="A"')
        second = result.index('description="B"')
        assert first < second
        assert "[A](" not in result
        assert "[B](" not in result

    def test_reference_links_are_left_alone(self, index: DocumentIndex):
        result = render(index, "See [Snippet](./snippet.md?md-link=true)")
        assert "See [Snippet](./snippet.md?md-link=true)" in result
        assert "inline_doc" not in result

    def test_failed_target_keeps_link_text(self, index: DocumentIndex, caplog):
        with caplog.at_level(logging.WARNING, logger="mdrules.formatter"):
            result = render(index, "[Gone](./gone.md?md-embed=true)")
        assert "[Gone](./gone.md?md-embed=true)" in result
        assert "inline_doc" not in result
        assert "Cannot inline 'Gone'" in caplog.text


class TestFormatContext:
    def test_empty(self, index: DocumentIndex):
        assert ContextFormatter(ROOT, index).format_context([]) == ""

    def test_project_output(self, doc_index: DocumentIndex, docs_project: Path):
        items = ContextAssembler(doc_index).assemble(["src/main.ts"], [])
        output = ContextFormatter(docs_project, doc_index).format_context(items)

        blocks = output.split("\n\n")
        assert len(blocks) == len(items) == 4
        assert blocks[0].startswith('<doc description="Style guide" type="related" file="docs/style.md">')
        assert blocks[1].startswith(
            '<doc description="Global rules" type="always" file=".cursor/rules/global.md">'
        )
        assert blocks[3] == (
            '<doc type="auto" file="docs/typescript.md">\n'
            "# TypeScript\n"
            "See [Testing](./testing.md?md-link=true) before writing tests.\n"
            '<inline_doc description="Snippet" file="docs/snippet.md" lines="2-3">\n'
            "Line 2\nLine 3\n"
            "</inline_doc>\n"
            "</doc>"
        )
