"""Data models for context assembly."""

from __future__ import annotations

import os
from enum import Enum

from pydantic import BaseModel, Field

from mdrules.parser.models import DocumentNode


class Classification(str, Enum):
    """Why a document was included, highest priority first."""

    ALWAYS = "always"  # alwaysApply in front matter
    AUTO = "auto"  # globs matched an attached file
    AGENT = "agent"  # selected by the agent
    MANUAL = "manual"  # attached by the user
    RELATED = "related"  # reached through a link from another item

    @property
    def priority(self) -> int:
        return _PRIORITY[self]


_PRIORITY = {c: i for i, c in enumerate(Classification)}


class ContextItem(BaseModel):
    """A document selected for the context, with the reason it was selected."""

    node: DocumentNode
    classification: Classification
    linked_via_anchor: str | None = None  # related items only
    linked_from_path: str | None = None  # related items only

    @property
    def path(self) -> str:
        return self.node.path

    @property
    def is_related(self) -> bool:
        return self.classification is Classification.RELATED


class ContextPackage(BaseModel):
    """The ordered context items together with the request that produced them."""

    items: list[ContextItem] = Field(default_factory=list)
    attached_files: list[str] = Field(default_factory=list)
    agent_selected: list[str] = Field(default_factory=list)
    seed_paths: list[str] = Field(default_factory=list)
    hoist: bool = True
    assembly_time_ms: float = 0.0

    def counts(self) -> dict[str, int]:
        """Number of items per classification, in priority order."""
        counts = {c.value: 0 for c in Classification}
        for item in self.items:
            counts[item.classification.value] += 1
        return counts

    def summary(self, root: str | None = None) -> str:
        """Human-readable summary of what's in the context."""

        def show(path: str) -> str:
            return os.path.relpath(path, root) if root else path

        counts = self.counts()
        lines = [
            f"Context: {len(self.items)} documents "
            f"({', '.join(f'{n} {k}' for k, n in counts.items() if n)})",
            f"Attached: {', '.join(self.attached_files) or '-'}",
            f"Agent selected: {', '.join(self.agent_selected) or '-'}",
            f"Hoist: {'on' if self.hoist else 'off'}",
            f"Assembly time: {self.assembly_time_ms:.1f}ms",
            "",
            "Included documents:",
        ]
        for item in self.items:
            marker = "·" if item.is_related else ">"
            lines.append(f"  {marker} {show(item.path)} [{item.classification.value}]")
            if item.is_related:
                lines.append(
                    f"    via '{item.linked_via_anchor}' from {show(item.linked_from_path or '')}"
                )

        return "\n".join(lines)
