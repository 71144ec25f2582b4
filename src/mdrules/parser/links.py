"""Extract qualifying markdown links from document text.

Only links that opt in through query parameters take part in the graph:

    [Style guide](./style.md?md-link=true)          followed, never inlined
    [Setup](./setup.md?md-embed=true)               inlined whole
    [Snippet](./snippet.md?md-embed=10-20)          inlined, lines 10-20
    [Tail](./notes.md?md-link=1&md-embed=5-end)     inlined from line 5

Everything else is left alone.
"""

from __future__ import annotations

import logging
import os
import re
from urllib.parse import parse_qs, urlsplit

from mdrules.exceptions import LinkResolutionError
from mdrules.parser.models import DocumentLink, EmbedKind, LineRange

logger = logging.getLogger("mdrules.links")

LINK_PATTERN = re.compile(r"\[([^\]]+?)\]\(([^)]+)\)")

LINK_PARAM = "md-link"
EMBED_PARAM = "md-embed"

# md-link is compared exactly; md-embed only has to be something other than "false"
_LINK_TRUTHY = ("true", "1")
_EMBED_WHOLE = ("", "true", "1")


def extract_links(source_path: str, text: str) -> list[DocumentLink]:
    """Return the qualifying links in `text`, in order of occurrence.

    Targets are resolved relative to the directory of `source_path`.
    A malformed target skips that link only.
    """
    source_dir = os.path.dirname(source_path)
    links: list[DocumentLink] = []

    for match in LINK_PATTERN.finditer(text):
        anchor_text, raw_target = match.group(1), match.group(2)
        try:
            link = _build_link(source_path, source_dir, anchor_text, raw_target)
        except LinkResolutionError as e:
            logger.warning(f"Skipping link '{raw_target}' in {source_path}: {e}")
            continue
        if link is not None:
            links.append(link)

    return links


def _build_link(
    source_path: str, source_dir: str, anchor_text: str, raw_target: str
) -> DocumentLink | None:
    path_part = raw_target.split("?", 1)[0].replace("&amp;", "&")
    cleaned_target = raw_target.replace("&amp;", "&")

    params = _query_params(cleaned_target)
    link_value = params.get(LINK_PARAM)
    embed_value = params.get(EMBED_PARAM)

    wants_link = link_value in _LINK_TRUTHY
    wants_embed = embed_value is not None and embed_value.lower() != "false"
    if not (wants_link or wants_embed):
        return None

    if not path_part:
        raise LinkResolutionError("link target has no path")

    target_path = os.path.abspath(os.path.join(source_dir, path_part))

    embed = EmbedKind.NONE
    line_range = None
    if wants_embed:
        embed, line_range = parse_embed_value(embed_value, source_path)

    logger.debug(
        f"Found link: anchor='{anchor_text}' target='{raw_target}' "
        f"path={target_path} embed={embed.value} range={line_range or 'N/A'}"
    )
    return DocumentLink(
        anchor_text=anchor_text,
        target_path=target_path,
        raw_target=raw_target,
        embed=embed,
        line_range=line_range,
    )


def _query_params(target: str) -> dict[str, str]:
    """Parse the query string of a link target, keeping the first value per key."""
    try:
        query = urlsplit(target).query
    except ValueError as e:
        raise LinkResolutionError(f"invalid URL: {e}") from e
    return {key: values[0] for key, values in parse_qs(query, keep_blank_values=True).items()}


def parse_embed_value(
    value: str, source_path: str = "<unknown>"
) -> tuple[EmbedKind, LineRange | None]:
    """Interpret an md-embed value: a flag, or an 'A-B' line range.

    Forms: '10-20', '-20' (from 0), '10-' and '10-end' (to the end).
    Anything unparseable embeds the whole target.
    """
    if value.lower() in _EMBED_WHOLE:
        return EmbedKind.WHOLE, None

    parts = value.split("-")
    if len(parts) != 2:
        logger.warning(
            f"Invalid embed range '{value}' in {source_path}. "
            "Expected N-M, -M, N- or N-end. Embedding the whole document."
        )
        return EmbedKind.WHOLE, None

    start_str, end_str = parts
    try:
        start = 0 if start_str == "" else int(start_str)
        end: int | str = "end" if end_str == "" or end_str.lower() == "end" else int(end_str)
    except ValueError:
        logger.warning(
            f"Invalid embed range '{value}' in {source_path}. "
            "Expected N-M, -M, N- or N-end. Embedding the whole document."
        )
        return EmbedKind.WHOLE, None

    if start < 0 or (end != "end" and (end < 0 or start > end)):
        logger.warning(
            f"Invalid embed range '{value}' in {source_path}: start line ({start}) "
            f"is after end line ({end}). Embedding the whole document."
        )
        return EmbedKind.WHOLE, None

    return EmbedKind.RANGE, LineRange(start=start, end=end)
