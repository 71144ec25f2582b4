"""Markdown parsing for mdrules: links, front matter and file discovery."""

from mdrules.parser.core import FileSystem
from mdrules.parser.frontmatter import parse_front_matter, trim_content
from mdrules.parser.links import extract_links
from mdrules.parser.models import (
    DocumentLink,
    DocumentMeta,
    DocumentNode,
    EmbedKind,
    LineRange,
    LoadFailure,
)

__all__ = [
    "DocumentLink",
    "DocumentMeta",
    "DocumentNode",
    "EmbedKind",
    "FileSystem",
    "LineRange",
    "LoadFailure",
    "extract_links",
    "parse_front_matter",
    "trim_content",
]
