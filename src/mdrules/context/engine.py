"""Context assembly over the document index.

Algorithm:
  1. Classify every loaded document: the first matching rule of
     always > auto > agent > manual wins. Matches are the seeds.
  2. Breadth-first from the seeds through followed (non-embedded) links.
     Every newly reached document becomes a `related` item that records
     the anchor and the document it was first reached from.
  3. Order: seeded items by (priority, path). Each related item is grouped
     under its primary linker, the earliest seeded item that links to it,
     and the group is emitted just before that linker (hoist) or just
     after it. Related items without a seeded linker go last, by path.

The result depends only on the index contents, the request and the hoist
flag, never on the order in which documents were loaded.
"""

from __future__ import annotations

import logging
import os
import time
from collections import Counter, deque
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from mdrules.context.models import Classification, ContextItem, ContextPackage
from mdrules.exceptions import AssemblyError
from mdrules.graph.builder import DocumentIndex
from mdrules.parser.core import matches_glob
from mdrules.parser.models import DocumentNode

logger = logging.getLogger("mdrules.context")


@dataclass(frozen=True)
class _Request:
    """Caller inputs, normalised once per assembly."""

    attached_paths: frozenset[str]  # absolute
    attached_relative: tuple[str, ...]  # root-relative POSIX, for glob matching
    agent_selected: frozenset[str]  # raw entries plus their absolute forms


def _is_always(node: DocumentNode, request: _Request) -> bool:
    return node.meta.always_apply


def _is_auto(node: DocumentNode, request: _Request) -> bool:
    return bool(node.meta.globs) and any(
        matches_glob(rel, glob)
        for rel in request.attached_relative
        for glob in node.meta.globs
    )


def _is_agent(node: DocumentNode, request: _Request) -> bool:
    if node.path in request.agent_selected:
        return True
    return node.meta.description is not None and node.meta.description in request.agent_selected


def _is_manual(node: DocumentNode, request: _Request) -> bool:
    return node.path in request.attached_paths


# Evaluated in order; the first match wins
_RULES: tuple[tuple[Classification, Callable[[DocumentNode, _Request], bool]], ...] = (
    (Classification.ALWAYS, _is_always),
    (Classification.AUTO, _is_auto),
    (Classification.AGENT, _is_agent),
    (Classification.MANUAL, _is_manual),
)


def classify(node: DocumentNode, request: _Request) -> Classification | None:
    """Return the seed classification of a node, or None if it is not seeded."""
    return next((c for c, matches in _RULES if matches(node, request)), None)


class ContextAssembler:
    """Selects and orders the documents to hand to an agent."""

    def __init__(self, index: DocumentIndex, hoist: bool = True) -> None:
        self.index = index
        self.root = index.root
        self.hoist = hoist

    def assemble_package(
        self,
        attached_files: list[str] | None = None,
        agent_selected: list[str] | None = None,
    ) -> ContextPackage:
        """Assemble and wrap the items with the request that produced them."""
        start = time.time()
        attached_files = list(attached_files or [])
        agent_selected = list(agent_selected or [])

        items = self.assemble(attached_files, agent_selected)

        return ContextPackage(
            items=items,
            attached_files=attached_files,
            agent_selected=agent_selected,
            seed_paths=[i.path for i in items if not i.is_related],
            hoist=self.hoist,
            assembly_time_ms=(time.time() - start) * 1000,
        )

    def assemble(
        self,
        attached_files: list[str] | None = None,
        agent_selected: list[str] | None = None,
    ) -> list[ContextItem]:
        """Classify, expand and order the context for one request."""
        request = self._make_request(attached_files or [], agent_selected or [])

        items = self._classify(request)
        seeds = list(items)
        self._expand_related(items, seeds)
        ordered = self._order(list(items.values()))

        logger.debug(
            f"Assembled {len(ordered)} items from {len(seeds)} seeds "
            f"(hoist={'on' if self.hoist else 'off'})"
        )
        return ordered

    def _resolve(self, path: str) -> str:
        return os.path.abspath(os.path.join(self.root, path))

    def _make_request(self, attached_files: list[str], agent_selected: list[str]) -> _Request:
        attached_paths = [self._resolve(p) for p in attached_files]
        return _Request(
            attached_paths=frozenset(attached_paths),
            attached_relative=tuple(
                Path(os.path.relpath(p, self.root)).as_posix() for p in attached_paths
            ),
            agent_selected=frozenset(agent_selected)
            | frozenset(self._resolve(p) for p in agent_selected),
        )

    def _classify(self, request: _Request) -> dict[str, ContextItem]:
        items: dict[str, ContextItem] = {}
        for node in self.index.nodes:
            if node.is_error:
                continue
            classification = classify(node, request)
            if classification is not None:
                items[node.path] = ContextItem(node=node, classification=classification)
        return items

    def _expand_related(self, items: dict[str, ContextItem], seeds: list[str]) -> None:
        """Breadth-first walk through followed links. Mutates `items`."""
        visited: set[str] = set()
        queue = deque(sorted(seeds))

        while queue:
            path = queue.popleft()
            if path in visited:
                continue
            visited.add(path)

            for link in items[path].node.links:
                if link.is_embedded:
                    continue
                target = self.index.get(link.target_path)
                if target is None or target.is_error:
                    logger.warning(
                        f"Skipping link '{link.anchor_text}' in {path}: "
                        f"target {link.target_path} could not be loaded"
                    )
                    continue
                if target.path in items:
                    continue
                items[target.path] = ContextItem(
                    node=target,
                    classification=Classification.RELATED,
                    linked_via_anchor=link.anchor_text,
                    linked_from_path=path,
                )
                queue.append(target.path)

    def _order(self, items: list[ContextItem]) -> list[ContextItem]:
        non_related = sorted(
            (i for i in items if not i.is_related),
            key=lambda i: (i.classification.priority, i.path),
        )
        related = [i for i in items if i.is_related]
        position = {item.path: n for n, item in enumerate(non_related)}

        groups: dict[str, list[ContextItem]] = {}
        orphans: list[ContextItem] = []
        for item in related:
            linkers = [p for p in self._linkers(item.path) if p in position]
            if not linkers:
                logger.warning(f"No seeded document links to {item.path}, placing it last")
                orphans.append(item)
                continue
            primary = min(linkers, key=position.__getitem__)
            groups.setdefault(primary, []).append(item)

        ordered: list[ContextItem] = []
        for item in non_related:
            group = sorted(groups.get(item.path, []), key=lambda i: i.path)
            if self.hoist:
                ordered.extend(group)
                ordered.append(item)
            else:
                ordered.append(item)
                ordered.extend(group)
        ordered.extend(sorted(orphans, key=lambda i: i.path))

        if Counter(i.path for i in ordered) != Counter(i.path for i in items):
            raise AssemblyError(
                f"Ordering produced {len(ordered)} items from {len(items)}; "
                "context items were dropped or duplicated"
            )
        return ordered

    def _linkers(self, path: str) -> list[str]:
        """Paths whose documents link to `path` through a followed link."""
        if self.index.graph.has_node(path):
            return self.index.linkers_of(path)
        # Index built without a graph; fall back to scanning the nodes
        return [
            node.path
            for node in self.index.nodes
            if any(link.target_path == path and not link.is_embedded for link in node.links)
        ]
