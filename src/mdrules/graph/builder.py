"""Build the document index from markdown files and the links between them."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

import networkx as nx

from mdrules.config import IndexerConfig, ProjectConfig
from mdrules.exceptions import DocumentLoadError, FrontMatterError
from mdrules.parser.core import FileSystem
from mdrules.parser.frontmatter import parse_front_matter, trim_content
from mdrules.parser.links import extract_links
from mdrules.parser.models import DocumentNode, LoadFailure, is_markdown_path

logger = logging.getLogger("mdrules.graph")


class DocumentIndex:
    """Absolute path -> DocumentNode, plus the link graph between documents.

    Graph nodes are document paths. An edge source -> target carries
    `references` (links that are followed) and `embeds` (links that are
    inlined) counts.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = os.path.abspath(root)
        self._nodes: dict[str, DocumentNode] = {}
        self.graph = nx.DiGraph()

    def add(self, node: DocumentNode) -> None:
        self._nodes[node.path] = node

    def get(self, path: str) -> DocumentNode | None:
        return self._nodes.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._nodes))

    @property
    def nodes(self) -> list[DocumentNode]:
        """All nodes, sorted by path."""
        return [self._nodes[p] for p in sorted(self._nodes)]

    def rebuild_graph(self) -> nx.DiGraph:
        """Recompute the link graph from the indexed nodes."""
        graph = nx.DiGraph()
        for node in self.nodes:
            graph.add_node(
                node.path,
                markdown=node.is_markdown,
                error=node.is_error,
                description=node.meta.description or "",
            )
        for node in self.nodes:
            for link in node.links:
                if not graph.has_edge(node.path, link.target_path):
                    graph.add_edge(node.path, link.target_path, references=0, embeds=0)
                key = "embeds" if link.is_embedded else "references"
                graph.edges[node.path, link.target_path][key] += 1
        self.graph = graph
        return graph

    def linkers_of(self, path: str) -> list[str]:
        """Documents linking to `path` through a followed (non-embedded) link."""
        if not self.graph.has_node(path):
            return []
        return sorted(
            source
            for source in self.graph.predecessors(path)
            if self.graph.edges[source, path]["references"] > 0
        )

    def agent_attachable(self) -> list[DocumentNode]:
        """Documents an agent may select by description.

        These carry a description and are neither always applied nor
        attached automatically through globs.
        """
        return [
            node
            for node in self.nodes
            if not node.is_error
            and node.is_markdown
            and node.meta.description
            and not node.meta.always_apply
            and not node.meta.globs
        ]

    def stats(self) -> dict:
        """Get index statistics."""
        nodes = self.nodes
        references = embeds = 0
        for _, _, data in self.graph.edges(data=True):
            references += data.get("references", 0)
            embeds += data.get("embeds", 0)

        return {
            "documents": sum(1 for n in nodes if n.is_markdown),
            "other_files": sum(1 for n in nodes if not n.is_markdown),
            "errors": sum(1 for n in nodes if n.is_error),
            "always_apply": sum(1 for n in nodes if not n.is_error and n.meta.always_apply),
            "with_globs": sum(1 for n in nodes if not n.is_error and n.meta.globs),
            "agent_attachable": len(self.agent_attachable()),
            "total_nodes": self.graph.number_of_nodes(),
            "total_edges": self.graph.number_of_edges(),
            "references": references,
            "embeds": embeds,
        }


class DocumentGraphBuilder:
    """Loads documents and every document reachable through their links.

    Each path is loaded at most once per build. Concurrent requests for a
    path that is still loading wait on the same task.
    """

    def __init__(self, root: str | Path, file_system: FileSystem | None = None) -> None:
        self.root = os.path.abspath(root)
        self.fs = file_system or FileSystem(self.root)
        self.index = DocumentIndex(self.root)
        self._in_flight: dict[str, asyncio.Task[DocumentNode]] = {}

    async def build(self) -> DocumentIndex:
        """Rebuild the index from scratch.

        Discovered files are loaded first, then their links are followed
        round by round until no new documents turn up.
        """
        self.index = DocumentIndex(self.root)
        self._in_flight = {}

        seeds = self.fs.find_files()
        logger.info(f"Building document index from {len(seeds)} files under {self.root}")

        await self.get_nodes(seeds)
        await self._resolve_links(seeds)
        self.index.rebuild_graph()

        stats = self.index.stats()
        logger.info(
            f"Indexed {len(self.index)} nodes "
            f"({stats['documents']} documents, {stats['errors']} errors, "
            f"{stats['total_edges']} links)"
        )
        return self.index

    async def _resolve_links(self, seeds: Iterable[str]) -> None:
        processed: set[str] = set()
        frontier = sorted(set(seeds))

        while frontier:
            processed.update(frontier)
            queued: list[str] = []
            to_load: list[str] = []

            for path in frontier:
                node = self.index.get(path)
                if node is None:
                    continue
                for link in node.links:
                    target = link.target_path
                    if target not in self.index and target not in to_load:
                        to_load.append(target)
                    if target not in processed and target not in queued:
                        queued.append(target)

            if to_load:
                logger.debug(f"Loading {len(to_load)} linked documents")
                await self.get_nodes(to_load)
            frontier = sorted(queued)

    async def get_node(self, path: str) -> DocumentNode:
        """Return the node for `path`, loading it if needed."""
        path = os.path.abspath(path)

        node = self.index.get(path)
        if node is not None:
            logger.debug(f"Cache hit: {path}")
            return node

        pending = self._in_flight.get(path)
        if pending is not None:
            logger.debug(f"Joining in-flight load: {path}")
            return await pending

        task = asyncio.ensure_future(self._load(path, self.index))
        self._in_flight[path] = task
        return await task

    async def get_nodes(self, paths: Iterable[str]) -> list[DocumentNode]:
        """Load several paths concurrently. Result order is not guaranteed."""
        unique = list(dict.fromkeys(os.path.abspath(p) for p in paths))
        return list(await asyncio.gather(*(self.get_node(p) for p in unique)))

    async def _load(self, path: str, index: DocumentIndex) -> DocumentNode:
        try:
            node = await self._read_node(path)
            index.add(node)
            return node
        finally:
            # A task left over from an earlier build must not evict a newer one
            if self._in_flight.get(path) is asyncio.current_task():
                del self._in_flight[path]

    async def _read_node(self, path: str) -> DocumentNode:
        markdown = is_markdown_path(path)

        if not await self.fs.path_exists(path):
            logger.warning(f"Linked document not found: {path}")
            return DocumentNode(
                path=path, is_markdown=markdown, error=LoadFailure(reason="file not found")
            )

        try:
            text = await self.fs.read_file(path)
        except DocumentLoadError as e:
            logger.error(f"Error reading {path}: {e.reason}")
            return DocumentNode(
                path=path, is_markdown=markdown, error=LoadFailure(reason=e.reason)
            )

        if not markdown:
            return DocumentNode(path=path, content=trim_content(text), is_markdown=False)

        try:
            meta, body = parse_front_matter(path, text)
        except FrontMatterError as e:
            logger.error(f"Error parsing {path}: {e}")
            return DocumentNode(
                path=path, content=trim_content(text), error=LoadFailure(reason=str(e))
            )

        return DocumentNode(
            path=path, content=body, meta=meta, links=extract_links(path, body)
        )


def build_index(root: str | Path, config: ProjectConfig | None = None) -> DocumentIndex:
    """Build a document index synchronously."""
    indexer_config = config.indexer if config else IndexerConfig()
    builder = DocumentGraphBuilder(root, FileSystem.from_config(root, indexer_config))
    return asyncio.run(builder.build())
