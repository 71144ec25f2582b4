"""Document index and link graph."""

from mdrules.graph.builder import DocumentGraphBuilder, DocumentIndex, build_index

__all__ = ["DocumentGraphBuilder", "DocumentIndex", "build_index"]
