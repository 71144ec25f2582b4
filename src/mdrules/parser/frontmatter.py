"""YAML front-matter parsing for markdown documents."""

from __future__ import annotations

import re

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from mdrules.exceptions import FrontMatterError
from mdrules.parser.models import DocumentMeta

FRONT_MATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?", re.MULTILINE | re.DOTALL
)
_BLANK_RUNS = re.compile(r"\n{2,}")
_WHITESPACE = re.compile(r"\s+")


class _RawMeta(BaseModel):
    """Front matter as written by the author, before normalisation."""

    model_config = ConfigDict(extra="allow")

    description: str | None = None
    globs: list[str] | str | None = None
    alwaysApply: bool | str | None = None


def trim_content(text: str) -> str:
    """Strip surrounding whitespace and collapse runs of blank lines."""
    return _BLANK_RUNS.sub("\n", text.strip())


def split_front_matter(text: str) -> tuple[str | None, str]:
    """Return (yaml_block, body). yaml_block is None when there is no fence."""
    match = FRONT_MATTER_PATTERN.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end():]


def parse_front_matter(path: str, text: str) -> tuple[DocumentMeta, str]:
    """Parse a document into its metadata and trimmed body.

    Raises FrontMatterError when the YAML is invalid, is not a mapping,
    or does not fit the metadata schema.
    """
    block, body = split_front_matter(text)
    if block is None:
        return DocumentMeta(), trim_content(body)

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise FrontMatterError(f"Invalid YAML front matter in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"Front matter in {path} must be a mapping, got {type(data).__name__}"
        )

    try:
        raw = _RawMeta(**{str(k): v for k, v in data.items()})
    except ValidationError as e:
        raise FrontMatterError(f"Invalid front matter in {path}: {e}") from e

    return _normalise(raw), trim_content(body)


def _normalise(raw: _RawMeta) -> DocumentMeta:
    description = raw.description.strip() if raw.description else None

    globs: list[str] = []
    if isinstance(raw.globs, str):
        candidates = [_WHITESPACE.sub("", g) for g in raw.globs.split(",")]
    else:
        candidates = [g.strip() for g in raw.globs or []]
    for glob in candidates:
        if glob and glob not in globs:
            globs.append(glob)

    if isinstance(raw.alwaysApply, str):
        always_apply = raw.alwaysApply.strip().lower() == "true"
    else:
        always_apply = bool(raw.alwaysApply)

    return DocumentMeta(
        description=description or None,
        globs=globs,
        always_apply=always_apply,
    )
