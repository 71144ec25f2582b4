"""Data models for documents, their metadata and their links."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EmbedKind(str, Enum):
    """How a link is rendered once followed."""

    NONE = "none"  # reference only, never substituted inline
    WHOLE = "whole"  # entire target inlined
    RANGE = "range"  # line-bounded excerpt inlined


class LineRange(BaseModel):
    """Requested excerpt of an embedded document, as written in the link."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0)
    end: Union[int, Literal["end"]] = "end"

    @model_validator(mode="after")
    def _check_order(self) -> "LineRange":
        if self.end != "end":
            if self.end < 0:
                raise ValueError("end must be non-negative")
            if self.start > self.end:
                raise ValueError(f"start {self.start} is greater than end {self.end}")
        return self

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class DocumentLink(BaseModel):
    """A qualifying link from one document to another."""

    model_config = ConfigDict(frozen=True)

    anchor_text: str
    target_path: str  # absolute
    raw_target: str  # as written, used to find the link again when rendering
    embed: EmbedKind = EmbedKind.NONE
    line_range: LineRange | None = None

    @property
    def is_embedded(self) -> bool:
        return self.embed is not EmbedKind.NONE


class DocumentMeta(BaseModel):
    """Front-matter metadata of a document."""

    model_config = ConfigDict(frozen=True)

    description: str | None = None
    globs: list[str] = Field(default_factory=list)
    always_apply: bool = False


class LoadFailure(BaseModel):
    """Why a document is only a placeholder in the index."""

    model_config = ConfigDict(frozen=True)

    reason: str


class DocumentNode(BaseModel):
    """One file in the document index, keyed by absolute path."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str = ""
    meta: DocumentMeta = Field(default_factory=DocumentMeta)
    links: list[DocumentLink] = Field(default_factory=list)
    is_markdown: bool = True
    error: LoadFailure | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


MARKDOWN_SUFFIXES = (".md",)


def is_markdown_path(file_path: str) -> bool:
    """Detect markdown documents by file suffix."""
    return file_path.lower().endswith(MARKDOWN_SUFFIXES)
